from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.transfers")

REQUIRED_FIELDS = ("destination_account_number", "amount")
