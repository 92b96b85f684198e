import time
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from sellerbank.common.constants import request_id_ctx
from sellerbank.common.utils import build_error, json_error
from sellerbank.rate_limiting.constants import DEFAULT_LIMIT, DEFAULT_WINDOW, RATE_LIMIT_PREFIX
from sellerbank.rate_limiting.rate_limit_sliding_window import redis_allow_sliding
from sellerbank.rate_limiting.utils import _identifier_from_request
from sellerbank.middlewares.constants import logger


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Coarse per identifier + path limit. Financial actions carry their own tighter windows."""

    def __init__(self, app, limit: int = DEFAULT_LIMIT, window: int = DEFAULT_WINDOW):
        super().__init__(app)
        self.limit = limit
        self.window = window

    async def dispatch(self, request: Request, call_next):
        identifier, scope = _identifier_from_request(request)
        key = f"{RATE_LIMIT_PREFIX}:global:{scope}:{identifier}:{request.url.path}"

        allowed, remaining, reset = await redis_allow_sliding(key, self.limit, self.window)
        request.state.rate_limit = {"limit": self.limit, "remaining": remaining, "reset": reset}

        if not allowed:
            retry_after = max(1, reset - int(time.time()))
            logger.warning("rate_limit.global.exceeded", extra={"path": request.url.path, "scope": scope})
            payload = build_error(code="RATE_LIMITED", details={"message": "Too many requests", "retry_after": retry_after},
                                  request_id=request_id_ctx.get(None))
            return json_error(payload, status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                              headers={"Retry-After": str(retry_after)})

        response = await call_next(request)
        # a route level limiter may have replaced the numbers with its own window
        rl = request.state.rate_limit
        response.headers["X-RateLimit-Limit"] = str(rl["limit"])
        response.headers["X-RateLimit-Remaining"] = str(rl["remaining"])
        response.headers["X-RateLimit-Reset"] = str(rl["reset"])
        return response
