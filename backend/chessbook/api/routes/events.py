"""
Event endpoints with Redis caching on list and detail reads.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.core.logging import get_logger
from chessbook.db.session import get_db
from chessbook.schemas.event import EventListResponse, EventResponse
from chessbook.services.cache_service import (
    get_cached_event,
    get_cached_events,
    set_cached_event,
    set_cached_events,
)
from chessbook.services.event_service import get_event, list_events

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with pagination.
    Results are cached in Redis; the cache is dropped whenever a booking
    changes an event's slot counter.
    """
    cached = await get_cached_events(page, page_size, upcoming_only)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size, upcoming_only)

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump() for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    await set_cached_events(page, page_size, upcoming_only, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Slot counts shown here are display-only."""
    cached = await get_cached_event(event_id)
    if cached:
        return EventResponse(**cached)

    event = await get_event(db, event_id)
    data = EventResponse.model_validate(event).model_dump()
    await set_cached_event(event_id, data)
    return data
