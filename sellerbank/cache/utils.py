import hashlib
import orjson
from typing import Any, Optional
from redis.exceptions import RedisError
from sellerbank.cache._cache import get_redis_client
from sellerbank.common.logging_setup import get_logger

logger = get_logger("sellerbank.cache")


def build_key(*parts: str) -> str:
    joined = ":".join(p for p in parts if p is not None and p != "")
    if len(joined) > 200:
        return hashlib.sha256(joined.encode()).hexdigest()
    return joined


def serialize(value: Any) -> bytes:
    return orjson.dumps(value)


def deserialize(b: Optional[bytes]) -> Any:
    if b is None:
        return None
    return orjson.loads(b)


async def cache_get(key: str) -> Any:
    """Read-through helper. Redis problems behave like a cache miss."""
    rc = get_redis_client()
    if rc is None:
        return None
    try:
        raw = await rc.get(key)
    except (RedisError, OSError) as e:
        logger.warning("cache.get.failed", extra={"key": key, "error": str(e)})
        return None
    try:
        return deserialize(raw)
    except orjson.JSONDecodeError:
        logger.warning("cache.get.corrupt", extra={"key": key})
        return None


async def cache_set(key: str, value: Any, ttl: int) -> None:
    rc = get_redis_client()
    if rc is None:
        return
    try:
        await rc.set(key, serialize(value), ex=ttl)
    except (RedisError, OSError) as e:
        logger.warning("cache.set.failed", extra={"key": key, "error": str(e)})


async def cache_delete(*keys: str) -> None:
    rc = get_redis_client()
    if rc is None or not keys:
        return
    try:
        await rc.delete(*keys)
    except (RedisError, OSError) as e:
        logger.warning("cache.delete.failed", extra={"keys": list(keys), "error": str(e)})
