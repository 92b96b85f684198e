from decimal import Decimal
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from sellerbank.taxes.constants import (DEFAULT_ICMS_RATE, DEFAULT_IMPORT_RATE, ICMS_BY_STATE,
                                        IMPORT_BASE_PRODUCT_FREIGHT)


class TaxProduct(BaseModel):
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    is_imported: bool = False
    ship_from_country: Optional[str] = None


class TaxConfig(BaseModel):
    import_enabled: bool = True
    import_rate: Decimal = DEFAULT_IMPORT_RATE
    import_base: Literal["product_only", "product_freight"] = IMPORT_BASE_PRODUCT_FREIGHT
    icms_enabled: bool = True
    icms_default: Decimal = DEFAULT_ICMS_RATE
    icms_use_state_rate: bool = True
    icms_rates: Dict[str, Decimal] = Field(default_factory=lambda: dict(ICMS_BY_STATE))


class ImportTaxResult(BaseModel):
    products_total: Decimal
    import_duty: Decimal
    icms_base: Decimal
    icms: Decimal
    total_taxes: Decimal
    icms_rate: Decimal
    has_imported_products: bool
    destination_state: str


class QuoteProductIn(BaseModel):
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    is_imported: Optional[bool] = None
    supplier_id: Optional[str] = None
    supplier_type: Optional[str] = None
    origin_code: Optional[str] = None
    ship_from_country: Optional[str] = Field(None, max_length=2)


class QuoteIn(BaseModel):
    products: List[QuoteProductIn] = Field(..., min_length=1)
    destination_state: str = Field(..., min_length=2, max_length=2)
    freight_total: Decimal = Field(Decimal("0"), ge=0)


class TaxConfigUpdateIn(BaseModel):
    import_enabled: Optional[bool] = None
    import_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    import_base: Optional[Literal["product_only", "product_freight"]] = None
    icms_enabled: Optional[bool] = None
    icms_default: Optional[Decimal] = Field(None, ge=0, lt=100)
    icms_use_state_rate: Optional[bool] = None
    icms_rates: Optional[Dict[str, Decimal]] = None

    model_config = {"extra": "forbid"}
