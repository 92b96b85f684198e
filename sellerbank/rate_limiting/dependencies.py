import time
from fastapi import Request
from sellerbank.common.custom_exceptions import RateLimitedError
from sellerbank.rate_limiting.constants import RATE_LIMIT_PREFIX, RATE_LIMITS, logger
from sellerbank.rate_limiting.rate_limit_sliding_window import redis_allow_sliding


async def check_rate_limit(action: str, identifier: str):
    """Sliding window check for a financial action. Returns (allowed, remaining, reset_ts, limit)."""
    limit, window = RATE_LIMITS[action]
    key = f"{RATE_LIMIT_PREFIX}:{action}:{identifier}"
    allowed, remaining, reset = await redis_allow_sliding(key, limit, window)
    return allowed, remaining, reset, limit


async def enforce_rate_limit(request: Request, action: str, identifier: str):
    """Raises RateLimitedError (429 + Retry-After) when the action's window is full."""
    allowed, remaining, reset, limit = await check_rate_limit(action, identifier)
    request.state.rate_limit = {"limit": limit, "remaining": remaining, "reset": reset}
    if not allowed:
        retry_after = max(1, reset - int(time.time()))
        logger.warning("rate_limit.exceeded", extra={"action": action, "identifier": identifier, "retry_after": retry_after})
        raise RateLimitedError(
            "Too many requests. Please wait before trying again.", retry_after=retry_after)


def rate_limit_dependency(action: str):
    async def _dep(request: Request):
        identifier = getattr(request.state, "user_identifier", None) or (request.client.host if request.client else "unknown")
        await enforce_rate_limit(request, action, str(identifier))
    return _dep
