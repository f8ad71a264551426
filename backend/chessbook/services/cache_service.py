"""
Redis caching service for event listings and event detail.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized)
      "events:list:page={page}&size={size}&upcoming={upcoming}"
  - Single event responses
      "events:detail:{event_id}"

Why:
  - Players refresh tournament listings constantly around registration
    opening; the data only changes when an event is edited or booked.

Invalidation strategy:
  - Booking created / cancelled: current_bookings changed, so delete every
    list page plus that event's detail key.
  - TTL-based expiry as safety net (REDIS_CACHE_TTL).

  All list keys share the "events:list:" prefix so we can SCAN and delete
  them. With a few dozen cached pages this is negligible.

The cached copy is display-only. The capacity ledger always reads and writes
the database row, so a stale cache can show a wrong slot count but can never
cause an overbooking.

Every operation fails open: Redis disabled or unreachable means a cache miss.
"""

import json
from typing import Optional

from chessbook.core.config import get_settings
from chessbook.core.logging import get_logger
from chessbook.core.metrics import record_cache_operation
from chessbook.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

LIST_PREFIX = "events:list:"
DETAIL_PREFIX = "events:detail:"


def _make_event_list_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{LIST_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"


def _make_event_detail_key(event_id: int) -> str:
    return f"{DETAIL_PREFIX}{event_id}"


async def _get_json(key: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def _set_json(key: str, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def get_cached_events(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    """Retrieve cached event list response."""
    return await _get_json(_make_event_list_key(page, page_size, upcoming_only))


async def set_cached_events(page: int, page_size: int, upcoming_only: bool, data: dict) -> None:
    """Cache event list response with TTL."""
    await _set_json(_make_event_list_key(page, page_size, upcoming_only), data)


async def get_cached_event(event_id: int) -> Optional[dict]:
    return await _get_json(_make_event_detail_key(event_id))


async def set_cached_event(event_id: int, data: dict) -> None:
    await _set_json(_make_event_detail_key(event_id), data)


async def invalidate_event_cache(event_id: Optional[int] = None) -> None:
    """
    Invalidate all cached event listings, and the detail entry of `event_id`
    when given. Uses SCAN to find list keys by prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        if event_id is not None:
            deleted += await client.delete(_make_event_detail_key(event_id))
        logger.info("cache_invalidated", keys_deleted=deleted, event_id=event_id)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))
