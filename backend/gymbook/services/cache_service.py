"""
Redis cache for attendance statistics.

CACHING STRATEGY
================

What we cache:
  - Attendance stats responses (JSON-serialized list of rows)
  - Key pattern: "stats:attendance:g{generation}:from={from}&to={to}&types={ids}"

Why:
  - The report runs a correlated COUNT per person over every booking
  - It is admin-only and read far more often than attendance changes

Invalidation:
  - Any attendance update or booking cancellation increments the
    "stats:attendance-generation" counter, so later reads build keys that
    no earlier entry can match
  - A report computed from data read before the change is written under the
    old generation and is never served
  - TTL-based expiry removes the orphaned entries

Redis is advisory: if it is disabled or unreachable every call degrades to a
miss and the report is computed from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from gymbook.core.config import Settings
from gymbook.core.logging import get_logger
from gymbook.core.metrics import record_cache_operation

logger = get_logger(__name__)

STATS_KEY_PREFIX = "stats:attendance:"
STATS_GENERATION_KEY = "stats:attendance-generation"

_redis_client: Optional[redis.Redis] = None


async def get_redis(settings: Settings) -> Optional[redis.Redis]:
    """Get or create the Redis connection. None when Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await client.ping()
            _redis_client = client
            logger.info("redis_connected", url=settings.REDIS_URL)
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            return None

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_stats_key(generation: str, start: Optional[str], end: Optional[str], session_types: list[int]) -> str:
    types = ",".join(str(t) for t in sorted(set(session_types)))
    return f"{STATS_KEY_PREFIX}g{generation}:from={start or ''}&to={end or ''}&types={types}"


async def stats_cache_key(
    settings: Settings,
    start: Optional[str],
    end: Optional[str],
    session_types: list[int],
) -> Optional[str]:
    """Key for the current cache generation, or None when the cache is unusable."""
    client = await get_redis(settings)
    if not client:
        return None

    try:
        generation = await client.get(STATS_GENERATION_KEY)
    except RedisError as e:
        record_cache_operation("get", "error")
        logger.error("cache_generation_error", error=str(e))
        return None

    return make_stats_key(generation or "0", start, end, session_types)


async def get_cached_stats(settings: Settings, key: str) -> Optional[list[dict]]:
    client = await get_redis(settings)
    if not client:
        return None

    try:
        data = await client.get(key)
    except RedisError as e:
        record_cache_operation("get", "error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data is None:
        record_cache_operation("get", "miss")
        return None
    record_cache_operation("get", "hit")
    logger.debug("cache_hit", key=key)
    return json.loads(data)


async def set_cached_stats(settings: Settings, key: str, rows: list[dict]) -> None:
    client = await get_redis(settings)
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(rows, default=str))
        record_cache_operation("set", "ok")
    except RedisError as e:
        record_cache_operation("set", "error")
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_stats_cache(settings: Settings) -> None:
    client = await get_redis(settings)
    if not client:
        return

    try:
        generation = await client.incr(STATS_GENERATION_KEY)
        record_cache_operation("invalidate", "ok")
        logger.info("cache_invalidated", generation=generation)
    except RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_status(settings: Settings) -> dict:
    client = await get_redis(settings)
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
