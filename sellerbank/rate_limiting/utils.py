import math
import time
from collections import deque
from typing import Optional
from fastapi import Request
from redis.exceptions import RedisError
from sellerbank.cache._cache import get_redis_client
from sellerbank.rate_limiting import constants
from sellerbank.rate_limiting.constants import (IN_MEMORY_SWEEP_EVERY, _in_memory_expiry, _in_memory_windows,
                                               _script_lock, logger)
from sellerbank.rate_limiting.lua_scripts import LUA_SLIDING_WINDOW


async def _ensure_lua_loaded() -> Optional[str]:
    """
    Load the Lua script into Redis script cache and store SHA.
    Called once lazily.
    """
    if constants._script_sha:
        return constants._script_sha
    rc = get_redis_client()
    if rc is None:
        return None
    async with _script_lock:
        if constants._script_sha:
            return constants._script_sha
        try:
            constants._script_sha = await rc.script_load(LUA_SLIDING_WINDOW)
        except (RedisError, OSError) as e:
            # fall back to EVAL (slower) in calls
            logger.warning("rate_limit.script_load.failed", extra={"error": str(e)})
            constants._script_sha = None
        return constants._script_sha


def _identifier_from_request(request: Request):
    """
    authenticated user_id or fallback to ip
    """
    user_identifier = getattr(request.state, "user_identifier", None)
    if user_identifier:
        return str(user_identifier), "user"
    # X-Forwarded-For: trust only when behind proper proxy
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        client_host = xff.split(",")[0].strip()
    else:
        client_host = request.client.host if request.client else "unknown"
    return client_host or "unknown", "ip"


def _in_memory_allow(key: str, limit: int, window: int):
    """
    Per-process sliding window. Returns (allowed, remaining, reset_ts).
    No awaits inside, so it runs atomically on the event loop.
    """
    now_ms = int(time.time() * 1000)
    window_ms = window * 1000
    _maybe_sweep(now_ms)

    hits = _in_memory_windows.setdefault(key, deque())
    while hits and hits[0] <= now_ms - window_ms:
        hits.popleft()

    allowed = len(hits) < limit
    if allowed:
        hits.append(now_ms)
    if hits:
        _in_memory_expiry[key] = hits[-1] + window_ms
    else:
        _in_memory_windows.pop(key, None)
        _in_memory_expiry.pop(key, None)
    remaining = max(0, limit - len(hits)) if allowed else 0
    reset_ms = (hits[0] + window_ms - now_ms) if hits else window_ms
    reset_ts = int(time.time()) + math.ceil(max(0, reset_ms) / 1000.0)
    return allowed, remaining, reset_ts


def _maybe_sweep(now_ms: int):
    """Drop keys whose newest hit has left its window."""
    constants._in_memory_checks += 1
    if constants._in_memory_checks < IN_MEMORY_SWEEP_EVERY:
        return
    constants._in_memory_checks = 0
    for key in [k for k, expires in _in_memory_expiry.items() if expires <= now_ms]:
        _in_memory_windows.pop(key, None)
        _in_memory_expiry.pop(key, None)


def reset_in_memory_limiter():
    _in_memory_windows.clear()
    _in_memory_expiry.clear()
    constants._in_memory_checks = 0
