from typing import Optional
import redis.asyncio as redis
from sellerbank.config.settings import config_settings

REDIS_TIMEOUT_SECONDS = 0.5

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Shared client, created on first use. None when redis is disabled."""
    global _redis_client
    if not config_settings.REDIS_ENABLED:
        return None
    if _redis_client is None:
        _redis_client = redis.Redis(
            host=config_settings.REDIS_HOST, port=config_settings.REDIS_PORT, db=config_settings.REDIS_DB,
            decode_responses=False, socket_timeout=REDIS_TIMEOUT_SECONDS,
            socket_connect_timeout=REDIS_TIMEOUT_SECONDS)
    return _redis_client


async def close_redis_client():
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
