"""
Event read service.

Event CRUD belongs to the organizer tooling; the booking core only needs to
list and show events with their live slot counters.
"""

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.core.errors import EventNotFound
from chessbook.models.enums import EventStatus
from chessbook.models.event import Event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID, always re-reading the ledger counter."""
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise EventNotFound(event_id)
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
    today: Optional[date] = None,
) -> tuple[list[Event], int]:
    """
    List events with pagination, soonest first.
    Uses the ix_events_status_date composite index when filtering upcoming events.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(
            Event.event_status == EventStatus.UPCOMING,
            Event.start_date >= (today or date.today()),
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.start_date.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total
