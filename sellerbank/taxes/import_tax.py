"""Import duty and ICMS for cross-border orders (Lei 14.902/2024, "Remessa Conforme").

Duty is a flat percentage of the imported goods (optionally plus their share of the
freight). ICMS is charged "por dentro": the tax is part of its own base, so

    icms_base = (duty_base + duty) / (1 - rate)
    icms      = icms_base * rate

Everything here is pure; the stored configuration is loaded elsewhere and passed in.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, Optional
from sellerbank.taxes.constants import (DEFAULT_ICMS_RATE, DEFAULT_IMPORT_RATE, DOMESTIC_COUNTRY, ICMS_BY_STATE,
                                        IMPORT_BASE_PRODUCT_FREIGHT, IMPORT_BASE_PRODUCT_ONLY,
                                        INTERNATIONAL_SUPPLIERS, KEY_ICMS_DEFAULT, KEY_ICMS_ENABLED,
                                        KEY_ICMS_STATE_PREFIX, KEY_ICMS_USE_STATE_RATE, KEY_IMPORT_BASE,
                                        KEY_IMPORT_ENABLED, KEY_IMPORT_RATE, NATIONAL_ORIGIN_CODE)
from sellerbank.taxes.models import ImportTaxResult, TaxConfig, TaxProduct

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _ships_from_domestic(country: Optional[str]) -> bool:
    return (country or "").upper() == DOMESTIC_COUNTRY


def is_international_supplier(supplier_type: Optional[str]) -> bool:
    if not supplier_type:
        return False
    return supplier_type.lower() in INTERNATIONAL_SUPPLIERS


def is_imported_product(supplier_id: Optional[str] = None, supplier_type: Optional[str] = None,
                        origin_code: Optional[str] = None, ship_from_country: Optional[str] = None) -> bool:
    # domestic stock of an international supplier is not an import
    if _ships_from_domestic(ship_from_country):
        return False
    if supplier_id and is_international_supplier(supplier_type):
        return True
    if origin_code and origin_code != NATIONAL_ORIGIN_CODE:
        return True
    return False


def get_icms_rate(state: str, config: Optional[TaxConfig] = None) -> Decimal:
    """ICMS percent for the destination state."""
    uf = (state or "").upper()
    if config is not None:
        if not config.icms_enabled:
            return ZERO
        if config.icms_use_state_rate and uf in config.icms_rates:
            return config.icms_rates[uf]
        return config.icms_default
    return ICMS_BY_STATE.get(uf, DEFAULT_ICMS_RATE)


def _line_total(p: TaxProduct) -> Decimal:
    return p.price * p.quantity


def _no_tax(products_total: Decimal, state: str) -> ImportTaxResult:
    return ImportTaxResult(
        products_total=_money(products_total),
        import_duty=ZERO,
        icms_base=ZERO,
        icms=ZERO,
        total_taxes=ZERO,
        icms_rate=ZERO,
        has_imported_products=False,
        destination_state=state,
    )


def calculate_import_tax(products: Iterable[TaxProduct], destination_state: str,
                         config: Optional[TaxConfig] = None, freight_total=0) -> ImportTaxResult:
    """Taxes owed on the imported part of an order.

    Without a config the statutory defaults apply: 20% duty on the goods only and the
    static per-state ICMS table. Products shipped from BR never count as imported.
    """
    products = list(products)
    state = (destination_state or "").upper()
    products_total = sum((_line_total(p) for p in products), ZERO)

    if config is not None and not config.import_enabled:
        return _no_tax(products_total, state)

    imported = [p for p in products if p.is_imported and not _ships_from_domestic(p.ship_from_country)]
    if not imported:
        return _no_tax(products_total, state)

    imported_total = sum((_line_total(p) for p in imported), ZERO)

    import_base = config.import_base if config is not None else IMPORT_BASE_PRODUCT_ONLY
    import_rate = config.import_rate if config is not None else DEFAULT_IMPORT_RATE

    duty_base = imported_total
    freight = Decimal(str(freight_total or 0))
    if import_base == IMPORT_BASE_PRODUCT_FREIGHT and products_total > 0:
        duty_base = imported_total + freight * (imported_total / products_total)

    duty = duty_base * import_rate / HUNDRED

    icms_rate = get_icms_rate(state, config)
    icms_base = ZERO
    icms = ZERO
    if icms_rate > 0:
        r = icms_rate / HUNDRED
        icms_base = (duty_base + duty) / (1 - r)
        icms = icms_base * r

    return ImportTaxResult(
        products_total=_money(products_total),
        import_duty=_money(duty),
        icms_base=_money(icms_base),
        icms=_money(icms),
        total_taxes=_money(duty + icms),
        icms_rate=icms_rate,
        has_imported_products=True,
        destination_state=state,
    )


def explain_taxes(result: ImportTaxResult, import_rate: Decimal = DEFAULT_IMPORT_RATE) -> str:
    if not result.has_imported_products:
        return ""
    return (
        "Impostos aplicados conforme Lei 14.902/2024 (Remessa Conforme):\n"
        f"• Imposto de Importação: {import_rate.normalize():f}% sobre produtos importados\n"
        f"• ICMS {result.destination_state}: {result.icms_rate.normalize():f}%"
    )


def _as_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() not in ("false", "0", "no", "off")


def _as_decimal(value: Optional[str], default: Decimal) -> Decimal:
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not parsed.is_finite() or parsed < 0:
        return default
    return parsed


def build_tax_config(values: Dict[str, str]) -> TaxConfig:
    """TaxConfig from stored key/value rows. Missing keys keep the defaults and the
    static state table is used when no tax.icms.<UF> row exists."""
    state_rates = {
        key[len(KEY_ICMS_STATE_PREFIX):].upper(): _as_decimal(val, DEFAULT_ICMS_RATE)
        for key, val in values.items()
        if key.startswith(KEY_ICMS_STATE_PREFIX)
    }
    import_base = values.get(KEY_IMPORT_BASE)
    if import_base not in (IMPORT_BASE_PRODUCT_ONLY, IMPORT_BASE_PRODUCT_FREIGHT):
        import_base = IMPORT_BASE_PRODUCT_FREIGHT
    return TaxConfig(
        import_enabled=_as_bool(values.get(KEY_IMPORT_ENABLED)),
        import_rate=_as_decimal(values.get(KEY_IMPORT_RATE), DEFAULT_IMPORT_RATE),
        import_base=import_base,
        icms_enabled=_as_bool(values.get(KEY_ICMS_ENABLED)),
        icms_default=_as_decimal(values.get(KEY_ICMS_DEFAULT), DEFAULT_ICMS_RATE),
        icms_use_state_rate=_as_bool(values.get(KEY_ICMS_USE_STATE_RATE)),
        icms_rates=state_rates or dict(ICMS_BY_STATE),
    )
