from decimal import Decimal
from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.taxes")

# ICMS percent by destination state (UF)
ICMS_BY_STATE = {
    # Norte
    "AC": Decimal("19"),
    "AM": Decimal("20"),
    "AP": Decimal("18"),
    "PA": Decimal("19"),
    "RO": Decimal("19.5"),
    "RR": Decimal("20"),
    "TO": Decimal("20"),
    # Nordeste
    "AL": Decimal("19"),
    "BA": Decimal("20.5"),
    "CE": Decimal("20"),
    "MA": Decimal("22"),
    "PB": Decimal("20"),
    "PE": Decimal("20.5"),
    "PI": Decimal("21"),
    "RN": Decimal("20"),
    "SE": Decimal("19"),
    # Centro-Oeste
    "DF": Decimal("20"),
    "GO": Decimal("19"),
    "MS": Decimal("17"),
    "MT": Decimal("17"),
    # Sudeste
    "ES": Decimal("17"),
    "MG": Decimal("18"),
    "RJ": Decimal("22"),
    "SP": Decimal("18"),
    # Sul
    "PR": Decimal("19.5"),
    "RS": Decimal("17"),
    "SC": Decimal("17"),
}

DEFAULT_ICMS_RATE = Decimal("17")
DEFAULT_IMPORT_RATE = Decimal("20")

INTERNATIONAL_SUPPLIERS = frozenset({
    "aliexpress", "alibaba", "temu", "shein", "wish",
    "banggood", "gearbest", "internacional", "china", "importado",
})

DOMESTIC_COUNTRY = "BR"
NATIONAL_ORIGIN_CODE = "0"

IMPORT_BASE_PRODUCT_ONLY = "product_only"
IMPORT_BASE_PRODUCT_FREIGHT = "product_freight"

# TaxConfigEntry keys
KEY_PREFIX = "tax."
KEY_IMPORT_ENABLED = "tax.importEnabled"
KEY_IMPORT_RATE = "tax.importRate"
KEY_IMPORT_BASE = "tax.importBase"
KEY_ICMS_ENABLED = "tax.icmsEnabled"
KEY_ICMS_DEFAULT = "tax.icmsDefault"
KEY_ICMS_USE_STATE_RATE = "tax.icmsUseStateRate"
KEY_ICMS_STATE_PREFIX = "tax.icms."

TAX_CONFIG_CACHE_KEY = "tax:config"
TAX_CONFIG_CACHE_TTL = 60   # seconds
