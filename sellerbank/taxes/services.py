from decimal import Decimal
from typing import Any, Dict
from sellerbank.common.custom_exceptions import PayloadValidationError
from sellerbank.taxes.constants import (ICMS_BY_STATE, KEY_ICMS_DEFAULT, KEY_ICMS_ENABLED, KEY_ICMS_STATE_PREFIX,
                                        KEY_ICMS_USE_STATE_RATE, KEY_IMPORT_BASE, KEY_IMPORT_ENABLED,
                                        KEY_IMPORT_RATE)
from sellerbank.taxes.import_tax import calculate_import_tax, explain_taxes, is_imported_product
from sellerbank.taxes.models import ImportTaxResult, QuoteIn, TaxConfig, TaxConfigUpdateIn, TaxProduct


def _num(value: Decimal) -> float:
    return float(value)


def quote_import_taxes(data: QuoteIn, config: TaxConfig) -> Dict[str, Any]:
    state = data.destination_state.upper()
    if state not in ICMS_BY_STATE:
        raise PayloadValidationError("Unknown destination state", extra={"destination_state": data.destination_state})

    products = []
    for p in data.products:
        imported = p.is_imported
        if imported is None:
            imported = is_imported_product(p.supplier_id, p.supplier_type, p.origin_code, p.ship_from_country)
        products.append(TaxProduct(price=p.price, quantity=p.quantity, is_imported=imported,
                                   ship_from_country=p.ship_from_country))

    result = calculate_import_tax(products, state, config=config, freight_total=data.freight_total)
    return {**serialize_tax_result(result), "explanation": explain_taxes(result, config.import_rate)}


def serialize_tax_result(result: ImportTaxResult) -> Dict[str, Any]:
    return {
        "products_total": _num(result.products_total),
        "import_duty": _num(result.import_duty),
        "icms_base": _num(result.icms_base),
        "icms": _num(result.icms),
        "total_taxes": _num(result.total_taxes),
        "icms_rate": _num(result.icms_rate),
        "has_imported_products": result.has_imported_products,
        "destination_state": result.destination_state,
    }


def serialize_tax_config(config: TaxConfig) -> Dict[str, Any]:
    return {
        "import_enabled": config.import_enabled,
        "import_rate": _num(config.import_rate),
        "import_base": config.import_base,
        "icms_enabled": config.icms_enabled,
        "icms_default": _num(config.icms_default),
        "icms_use_state_rate": config.icms_use_state_rate,
        "icms_rates": {uf: _num(rate) for uf, rate in sorted(config.icms_rates.items())},
    }


def config_update_to_entries(update: TaxConfigUpdateIn) -> Dict[str, str]:
    """Flatten an admin update into TaxConfigEntry key/value strings."""
    values: Dict[str, str] = {}
    if update.import_enabled is not None:
        values[KEY_IMPORT_ENABLED] = str(update.import_enabled).lower()
    if update.import_rate is not None:
        values[KEY_IMPORT_RATE] = str(update.import_rate)
    if update.import_base is not None:
        values[KEY_IMPORT_BASE] = update.import_base
    if update.icms_enabled is not None:
        values[KEY_ICMS_ENABLED] = str(update.icms_enabled).lower()
    if update.icms_default is not None:
        values[KEY_ICMS_DEFAULT] = str(update.icms_default)
    if update.icms_use_state_rate is not None:
        values[KEY_ICMS_USE_STATE_RATE] = str(update.icms_use_state_rate).lower()
    for uf, rate in (update.icms_rates or {}).items():
        uf = uf.upper()
        if uf not in ICMS_BY_STATE:
            raise PayloadValidationError("Unknown state in icms_rates", extra={"state": uf})
        if rate < 0 or rate >= 100:
            raise PayloadValidationError("ICMS rate must be at least 0 and below 100", extra={"state": uf})
        values[f"{KEY_ICMS_STATE_PREFIX}{uf}"] = str(rate)
    return values
