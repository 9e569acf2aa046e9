"""
Redis caching service for event listings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized, with available seats)
  - Key pattern: "events:list:page={page}&size={size}&upcoming={upcoming}&title={title}&date={date}"

Invalidation:
  - Any registration state change (register, cancel, admin override) alters
    available_seats, so all listing keys are dropped
  - Event create / update / delete drop them as well
  - TTL-based expiry as safety net

  All listing keys share the "events:list:" prefix, so invalidation is a SCAN
  over that prefix.

Single-event reads and availability are never cached: they must reflect the
live confirmed count.
"""

import json
from datetime import date
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

EVENT_LIST_PREFIX = "events:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or unreachable."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (redis.RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_event_list_key(
    page: int,
    page_size: int,
    upcoming_only: bool,
    title: Optional[str] = None,
    on_date: Optional[date] = None,
) -> str:
    return (
        f"{EVENT_LIST_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"
        f"&title={(title or '').lower()}&date={on_date.isoformat() if on_date else ''}"
    )


async def get_cached_events(key: str) -> Optional[dict]:
    """Retrieve a cached event list response."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", "hit" if data is not None else "miss")
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_events(key: str, data: dict) -> None:
    """Cache an event list response with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", "stored")
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """Drop every cached event listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        record_cache_operation("invalidate", "cleared")
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
