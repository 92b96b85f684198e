from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.withdrawals")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

BANK_DETAIL_FIELDS = ("bank_name", "agencia", "conta", "conta_tipo")
