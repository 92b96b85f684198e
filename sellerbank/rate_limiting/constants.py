import asyncio
from typing import Optional
from sellerbank.config.limits_config import limits_config
from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.rate_limiting")

DEFAULT_LIMIT = 120         # default requests
DEFAULT_WINDOW = 60         # seconds
RATE_LIMIT_PREFIX = "rl"    # redis key prefix
FAIL_OPEN = True                  # if redis is unavailable, allow requests (True) or deny (False)
USE_IN_MEMORY_FALLBACK = True     # local sliding window when redis fails (not distributed)

TRANSFER = "transfer"
WITHDRAWAL = "withdrawal"
ADJUSTMENT = "adjustment"
ACCOUNT_LOOKUP = "account_lookup"

# action -> (max requests, window seconds)
RATE_LIMITS = {
    TRANSFER: (limits_config.RL_TRANSFER_LIMIT, limits_config.RL_TRANSFER_WINDOW),
    WITHDRAWAL: (limits_config.RL_WITHDRAWAL_LIMIT, limits_config.RL_WITHDRAWAL_WINDOW),
    ADJUSTMENT: (limits_config.RL_ADJUSTMENT_LIMIT, limits_config.RL_ADJUSTMENT_WINDOW),
    ACCOUNT_LOOKUP: (limits_config.RL_ACCOUNT_LOOKUP_LIMIT, limits_config.RL_ACCOUNT_LOOKUP_WINDOW),
}

_script_sha: Optional[str] = None
_script_lock = asyncio.Lock()

# key -> deque of hit timestamps in ms
_in_memory_windows = {}
# key -> ms after which the key holds no live hits
_in_memory_expiry = {}
# stale keys are swept once every this many in-memory checks
IN_MEMORY_SWEEP_EVERY = 500
_in_memory_checks = 0
