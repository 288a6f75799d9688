"""
Optional Redis cache for dashboard projections. Only derived read models are cached.
Disabled when REDIS_URL is unset.

Cached values are keyed by a generation counter that every write increments, so a
projection computed before a write lands under a generation no reader asks for again.
The cache is best effort: Redis errors are logged and treated as a miss.
"""
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from shiptrack.config import settings

logger = logging.getLogger(__name__)

DASHBOARD_COUNTS_KEY = "read_model:dashboard_counts"
CUSTOMER_ROLLUP_KEY = "read_model:customer_rollup"
READ_MODEL_GENERATION_KEY = "read_model:generation"

_redis: redis.Redis | None = None


async def get_redis() -> redis.Redis | None:
    global _redis
    if _redis is None and settings.redis_url:
        _redis = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def versioned_key(key: str, generation: int) -> str:
    return f"{key}:{generation}"


async def read_model_generation() -> int | None:
    """Current generation, or None when the cache is disabled or unreachable."""
    r = await get_redis()
    if r is None:
        return None
    try:
        raw = await r.get(READ_MODEL_GENERATION_KEY)
    except RedisError as e:
        logger.warning("Read-model cache unavailable: %s", e)
        return None
    return int(raw) if raw is not None else 0


async def get_cached_json(key: str, generation: int) -> dict | list | None:
    r = await get_redis()
    if r is None:
        return None
    try:
        raw = await r.get(versioned_key(key, generation))
    except RedisError as e:
        logger.warning("Read-model cache get failed key=%s: %s", key, e)
        return None
    return json.loads(raw) if raw is not None else None


async def set_cached_json(key: str, generation: int, value: dict | list) -> None:
    r = await get_redis()
    if r is None:
        return
    try:
        await r.set(versioned_key(key, generation), json.dumps(value), ex=settings.read_model_cache_ttl_seconds)
    except RedisError as e:
        logger.warning("Read-model cache set failed key=%s: %s", key, e)


async def invalidate_read_models() -> None:
    """Move to a new generation. A failure leaves entries to expire by TTL."""
    r = await get_redis()
    if r is None:
        return
    try:
        await r.incr(READ_MODEL_GENERATION_KEY)
    except RedisError as e:
        logger.warning("Read-model cache invalidation failed: %s", e)
