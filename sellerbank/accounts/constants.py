from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.accounts")

RECENT_TRANSACTIONS_LIMIT = 20
MIN_LOOKUP_ACCOUNT_LENGTH = 10
ACCOUNT_NUMBER_ATTEMPTS = 10
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

UNAVAILABLE = "UNAVAILABLE"
