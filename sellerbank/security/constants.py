from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.security")

AUDIT_ACTION_PREFIX = "FINANCIAL_"
AUDIT_RESOURCE = "SellerAccount"

DANGEROUS_CHARS = "<>\"'`"
MAX_INPUT_LENGTH = 500

HIGH_FREQUENCY_TRANSACTIONS = "HIGH_FREQUENCY_TRANSACTIONS"
NEW_ACCOUNT = "NEW_ACCOUNT"
UNVERIFIED_KYC = "UNVERIFIED_KYC"
MULTIPLE_FAILED_ATTEMPTS = "MULTIPLE_FAILED_ATTEMPTS"

# suspicion reasons that stop the operation and lock the account
BLOCKING_REASONS = (MULTIPLE_FAILED_ATTEMPTS,)
