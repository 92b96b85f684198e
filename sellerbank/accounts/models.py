from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from sellerbank.schema.full_schema import AccountStatus, KycStatus, PixKeyType, TransactionType


class PayoutDetailsIn(BaseModel):
    pix_key_type: Optional[PixKeyType] = None
    pix_key: Optional[str] = Field(None, max_length=255)
    bank_code: Optional[str] = Field(None, max_length=16)
    bank_name: Optional[str] = Field(None, max_length=128)
    agencia: Optional[str] = Field(None, max_length=16)
    conta: Optional[str] = Field(None, max_length=32)
    conta_tipo: Optional[str] = Field(None, max_length=32)

    model_config = {"extra": "forbid"}


class AdminAccountUpdateIn(BaseModel):
    status: Optional[AccountStatus] = None
    kyc_status: Optional[KycStatus] = None
    reason: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


ADJUSTMENT_TYPES = (
    TransactionType.ADJUSTMENT_CREDIT,
    TransactionType.ADJUSTMENT_DEBIT,
    TransactionType.BONUS,
    TransactionType.FEE,
    TransactionType.CHARGEBACK,
    TransactionType.MIGRATION,
)

CREDIT_ADJUSTMENT_TYPES = (
    TransactionType.ADJUSTMENT_CREDIT,
    TransactionType.BONUS,
    TransactionType.MIGRATION,
)


class AdjustmentIn(BaseModel):
    type: TransactionType
    amount: float = Field(..., gt=0, description="Amount in reais")
    description: str = Field(..., min_length=1, max_length=500)
    meta: Optional[Dict[str, Any]] = None

    @field_validator("amount", mode="before")
    @classmethod
    def reject_boolean_amount(cls, value):
        if isinstance(value, bool):
            raise ValueError("amount must be a number")
        return value
