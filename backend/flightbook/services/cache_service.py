"""
Redis caching service for flight inventory listings.

CACHING STRATEGY
================

What we cache:
  - Inventory listing per flight (classes, fares, remaining tickets)
  - Cache key pattern: "inventory:flight:{flight_id}"

Invalidation:
  - On booking, cancellation or payment failure: delete the flight's key
  - On fare change or inventory create/delete: delete the flight's key
  - On hold expiry: delete all inventory keys (the sweeper spans flights)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

The cache is advisory. Booking never reads it: the seat ledger's conditional
update is the only authority on remaining tickets. Any Redis failure is
logged and treated as a miss.
"""

import json
from typing import Optional

import redis.asyncio as redis
from flightbook.core.config import get_settings
from flightbook.core.logging import get_logger
from flightbook.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

INVENTORY_KEY_PREFIX = "inventory:flight:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def _make_inventory_key(flight_id: int) -> str:
    return f"{INVENTORY_KEY_PREFIX}{flight_id}"


async def get_cached_inventory(flight_id: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_inventory_key(flight_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_inventory(flight_id: int, data: dict) -> None:
    """Cache an inventory listing with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_inventory_key(flight_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_inventory_cache(flight_id: Optional[int] = None) -> None:
    """
    Drop one flight's cached listing, or every listing when flight_id is None.
    """
    client = await get_redis()
    if not client:
        return

    try:
        if flight_id is not None:
            deleted = await client.delete(_make_inventory_key(flight_id))
        else:
            deleted = 0
            async for key in client.scan_iter(match=f"{INVENTORY_KEY_PREFIX}*", count=100):
                await client.delete(key)
                deleted += 1
        logger.info("cache_invalidated", flight_id=flight_id, keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
