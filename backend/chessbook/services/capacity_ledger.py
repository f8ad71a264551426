"""
Capacity ledger: admission control for event slots.

CONCURRENCY STRATEGY: Single conditional UPDATE
===============================================

Problem:
  Two players try to book the last slot simultaneously.
  Both read current_bookings=N-1, both increment, both succeed.
  Result: Overbooking.

Solution:
  The capacity check and the increment are the same statement:

    UPDATE events
       SET current_bookings = current_bookings + :n, version = version + 1
     WHERE id = :event_id
       AND event_status = 'UPCOMING'
       AND (max_capacity IS NULL OR current_bookings + :n <= max_capacity)

  The row lock taken by the UPDATE serializes concurrent reservations on the
  same event, and the predicate is re-evaluated against the committed value,
  so the loser sees rowcount == 0 instead of overselling. No read-then-write
  window, no retry loop. The CHECK constraint on events is the final safety
  net.

  Both operations run inside the caller's transaction: a reservation is only
  visible once the booking that owns it commits, and disappears with it on
  rollback.

current_bookings must not be assigned anywhere else.
"""

from sqlalchemy import case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.core.errors import EventNotBookable, EventNotFound, InsufficientSlots
from chessbook.core.logging import get_logger
from chessbook.core.metrics import capacity_release_underflows, record_reservation
from chessbook.models.enums import EventStatus
from chessbook.models.event import Event

logger = get_logger(__name__)


async def reserve(db: AsyncSession, event_id: int, count: int) -> None:
    """
    Reserve `count` slots on an event.

    Raises:
        EventNotFound: event does not exist
        EventNotBookable: event is not UPCOMING
        InsufficientSlots: capacity would be exceeded (nothing is mutated)
    """
    if count <= 0:
        raise ValueError("count must be positive")

    result = await db.execute(
        update(Event)
        .where(
            Event.id == event_id,
            Event.event_status == EventStatus.UPCOMING,
            or_(
                Event.max_capacity.is_(None),
                Event.current_bookings + count <= Event.max_capacity,
            ),
        )
        .values(
            current_bookings=Event.current_bookings + count,
            version=Event.version + 1,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 1:
        record_reservation("reserved")
        logger.info("capacity_reserved", event_id=event_id, count=count)
        return

    # Nothing was written; work out why for the caller.
    row = (
        await db.execute(
            select(Event.event_status, Event.max_capacity, Event.current_bookings).where(
                Event.id == event_id
            )
        )
    ).one_or_none()

    if row is None:
        record_reservation("not_found")
        raise EventNotFound(event_id)

    if row.event_status is not EventStatus.UPCOMING:
        record_reservation("not_bookable")
        raise EventNotBookable(event_id)

    record_reservation("insufficient")
    logger.info(
        "capacity_insufficient",
        event_id=event_id,
        requested=count,
        current=row.current_bookings,
        max_capacity=row.max_capacity,
    )
    raise InsufficientSlots(event_id, count)


async def release(db: AsyncSession, event_id: int, count: int) -> None:
    """
    Give back `count` slots. The counter is floored at zero; a release that
    would go negative means reserve/release pairing broke somewhere and is
    logged as an invariant breach rather than raised.
    """
    current = (
        await db.execute(
            select(Event.current_bookings).where(Event.id == event_id).with_for_update()
        )
    ).scalar_one_or_none()

    if current is None:
        logger.error("capacity_release_missing_event", event_id=event_id, count=count)
        return

    if current < count:
        capacity_release_underflows.inc()
        logger.error(
            "capacity_release_underflow",
            event_id=event_id,
            current=current,
            count=count,
        )

    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(
            current_bookings=case(
                (Event.current_bookings >= count, Event.current_bookings - count),
                else_=0,
            ),
            version=Event.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    logger.info("capacity_released", event_id=event_id, count=count)
