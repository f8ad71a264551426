"""
Booking service: create, cancel, settle and complete tournament bookings.

TRANSACTION BOUNDARIES
======================

Every public mutation here is one unit of work. It runs on the request's
session, commits at the end and rolls back on any exception, so concurrent
callers only ever observe a booking together with its slot reservation (or
neither):

  create:  reserve slots -> price -> insert booking + participant links -> commit
  cancel:  lock booking -> CANCELLED (flushed) -> release slots -> commit

Ordering inside a unit matters for crash safety: the reservation happens
before the booking row is written, and the cancellation is flushed before
slots are released.

Booking references are short and random, so two bookings can draw the same
one. The unique constraint catches it; we roll the whole unit back (the
reservation included) and try again with a fresh reference.

Side effects that leave the process (notifications, audit) run only after
commit and can never undo it.
"""

import json
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.core.errors import (
    BookingNotFound,
    CapacityError,
    CategoryAgeLimitExceeded,
    CategoryNotAvailable,
    DomainError,
    EventNotBookable,
    EventNotFound,
    FeatureDisabled,
    InvalidStateTransition,
    ParticipantNotFound,
    ReferenceGenerationFailed,
    ValidationError,
)
from chessbook.core.feature_flags import BookingPolicy
from chessbook.core.logging import get_logger
from chessbook.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_transition,
    reference_collisions,
)
from chessbook.core.security import CallerIdentity
from chessbook.models.booking import Booking, BookingParticipant
from chessbook.models.enums import (
    BookingStatus,
    EventStatus,
    GatewayKind,
    PaymentRecordStatus,
    PaymentStatus,
)
from chessbook.models.event import Category, Event
from chessbook.models.payment import Payment
from chessbook.models.user import Participant, User
from chessbook.services import capacity_ledger
from chessbook.services.audit import ENTITY_BOOKING, emit_audit
from chessbook.services.booking_reference import generate_booking_reference
from chessbook.services.booking_state import Transition, apply, state_of
from chessbook.services.interfaces.audit import AuditSink
from chessbook.services.interfaces.notifier import BookingNotifier
from chessbook.services.notifications import notify_booking_confirmed
from chessbook.services.pricing import PriceQuote, calculate_booking_amount

logger = get_logger(__name__)


@dataclass(frozen=True)
class ParticipantSelection:
    participant_id: int
    category_code: Optional[str] = None


@dataclass(frozen=True)
class BookingFilters:
    booking_status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    event_id: Optional[int] = None
    search: Optional[str] = None


def _is_reference_collision(exc: IntegrityError) -> bool:
    return "booking_reference" in str(exc.orig)


def age_on(date_of_birth: date, today: date) -> int:
    """Completed years at `today`."""
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def _check_category(
    category: Category,
    participant: Participant,
    today: date,
) -> None:
    if not category.age_limit:
        return
    age = age_on(participant.date_of_birth, today)
    if age > category.age_limit:
        raise CategoryAgeLimitExceeded(
            f"{participant.full_name} is {age} years old, which exceeds the age limit "
            f"of {category.age_limit} for {category.category_name}"
        )


async def load_booking(
    db: AsyncSession,
    booking_id: int,
    actor: Optional[CallerIdentity] = None,
    for_update: bool = False,
) -> Booking:
    """Fetch a booking. Non-admin actors only see their own; anything else is 'not found'."""
    query = select(Booking).where(Booking.id == booking_id)
    if actor is not None and not actor.is_admin:
        query = query.where(Booking.user_id == actor.user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


async def _insert_booking(
    db: AsyncSession,
    user_id: int,
    event_id: int,
    selections: Sequence[ParticipantSelection],
    policy: BookingPolicy,
    today: date,
    reference: str,
) -> tuple[Booking, PriceQuote]:
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if event is None:
        raise EventNotFound(event_id)
    if event.event_status is not EventStatus.UPCOMING:
        raise EventNotBookable(event_id)

    participant_ids = [s.participant_id for s in selections]
    rows = await db.execute(
        select(Participant).where(
            Participant.id.in_(participant_ids),
            Participant.user_id == user_id,
        )
    )
    participants = {p.id: p for p in rows.scalars().all()}

    categories = {c.category_code: c for c in event.categories}
    for selection in selections:
        participant = participants.get(selection.participant_id)
        if participant is None:
            raise ParticipantNotFound(selection.participant_id)

        # Category is optional and only checked when the event defines categories
        if selection.category_code and categories:
            category = categories.get(selection.category_code)
            if category is None:
                raise CategoryNotAvailable(selection.category_code)
            _check_category(category, participant, today)

    await capacity_ledger.reserve(db, event_id, len(selections))

    quote = calculate_booking_amount(
        event.entry_fee,
        [participants[pid].is_govt_student for pid in participant_ids],
        event.is_online,
        event.govt_concession_type,
        event.govt_concession_value,
        policy.offline_platform_fee,
    )

    booking = Booking(
        booking_reference=reference,
        event_id=event_id,
        user_id=user_id,
        booking_status=BookingStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        amount_paid=quote.total_amount,
        participant_count=quote.participant_count,
        participant_links=[
            BookingParticipant(participant_id=pid, event_id=event_id) for pid in participant_ids
        ],
    )
    db.add(booking)
    await db.flush()
    return booking, quote


async def create_booking(
    db: AsyncSession,
    user_id: int,
    event_id: int,
    selections: Sequence[ParticipantSelection],
    policy: BookingPolicy,
    today: Optional[date] = None,
    reference_factory: Optional[Callable[[], str]] = None,
) -> tuple[Booking, PriceQuote]:
    """
    Reserve slots and create a PENDING/PENDING booking.

    Raises:
        FeatureDisabled: new bookings are switched off
        ValidationError: empty/duplicate selections, foreign participant, category rules
        EventNotFound / EventNotBookable / InsufficientSlots: from the capacity ledger
        ReferenceGenerationFailed: every reference attempt collided
    """
    if not policy.allow_new_bookings:
        raise FeatureDisabled("New bookings are currently disabled")
    if not selections:
        raise ValidationError("At least one participant is required")
    participant_ids = [s.participant_id for s in selections]
    if len(set(participant_ids)) != len(participant_ids):
        raise ValidationError("Each participant can only be added once per booking")

    today = today or date.today()
    if reference_factory is None:
        def reference_factory() -> str:
            return generate_booking_reference(policy.reference_prefix, today)

    start = time.perf_counter()
    for attempt in range(1, policy.reference_max_attempts + 1):
        reference = reference_factory()
        try:
            booking, quote = await _insert_booking(
                db, user_id, event_id, selections, policy, today, reference
            )
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if not _is_reference_collision(e):
                record_booking_attempt("error")
                raise
            reference_collisions.inc()
            logger.warning(
                "booking_reference_collision",
                reference=reference,
                attempt=attempt,
                event_id=event_id,
            )
            continue
        except CapacityError:
            await db.rollback()
            record_booking_attempt("rejected")
            raise
        except DomainError:
            await db.rollback()
            record_booking_attempt("invalid")
            raise
        except Exception:
            await db.rollback()
            record_booking_attempt("error")
            raise

        booking_latency.observe(time.perf_counter() - start)
        record_booking_attempt("success")
        record_transition("create")
        logger.info(
            "booking_created",
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            user_id=user_id,
            event_id=event_id,
            participants=quote.participant_count,
            total_amount=str(quote.total_amount),
            attempt=attempt,
        )
        return await load_booking(db, booking.id), quote

    record_booking_attempt("error")
    logger.critical(
        "booking_reference_exhausted",
        event_id=event_id,
        attempts=policy.reference_max_attempts,
    )
    raise ReferenceGenerationFailed(policy.reference_max_attempts)


def confirm_via_payment(booking: Booking) -> bool:
    """
    Move a locked booking to CONFIRMED/PAID inside the caller's transaction.

    Returns False when the booking is already CONFIRMED/PAID (nothing to do),
    True when a transition happened. Other states raise the matching
    state-conflict error.
    """
    if state_of(booking) == (BookingStatus.CONFIRMED, PaymentStatus.PAID):
        return False
    apply(booking, Transition.CONFIRM_PAYMENT)
    record_transition("confirm")
    return True


async def _cancel_locked(db: AsyncSession, booking: Booking, reason: Optional[str]) -> None:
    apply(booking, Transition.CANCEL)
    booking.cancellation_reason = reason
    await db.flush()
    await capacity_ledger.release(db, booking.event_id, booking.participant_count)
    record_transition("cancel")


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    actor: CallerIdentity,
    reason: Optional[str],
    policy: BookingPolicy,
) -> Booking:
    """
    Cancel a booking and release exactly the slots it reserved.

    A PAID booking is marked REFUNDED; the money itself moves through
    payment_service.initiate_refund.
    """
    if not policy.allow_booking_cancellation and not actor.is_admin:
        raise FeatureDisabled("Booking cancellation is currently disabled")

    try:
        booking = await load_booking(db, booking_id, actor, for_update=True)
        previous = state_of(booking)
        await _cancel_locked(db, booking, reason)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        user_id=actor.user_id,
        event_id=booking.event_id,
        slots_released=booking.participant_count,
        previous_payment_status=previous[1].value,
    )
    return booking


async def record_offline_payment(
    db: AsyncSession,
    booking_id: int,
    actor: CallerIdentity,
    evidence: dict,
    policy: BookingPolicy,
    notifier: BookingNotifier,
    audit: Optional[AuditSink] = None,
) -> Booking:
    """
    Settle a PENDING booking outside the gateway (cash, bank transfer).

    Writes a COMPLETED OFFLINE payment and confirms the booking in one
    transaction.
    """
    if not policy.enable_offline_payment:
        raise FeatureDisabled("Offline payments are currently disabled")

    try:
        booking = await load_booking(db, booking_id, actor, for_update=True)
        previous = state_of(booking)
        apply(booking, Transition.SETTLE_OFFLINE)
        db.add(
            Payment(
                booking_id=booking.id,
                transaction_id=f"OFFLINE-{booking.booking_reference}",
                payment_gateway=GatewayKind.OFFLINE,
                amount=booking.amount_paid,
                currency=policy.currency,
                payment_status=PaymentRecordStatus.COMPLETED,
                gateway_response=json.dumps(evidence, default=str),
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    record_transition("offline_settle")
    logger.info(
        "booking_settled_offline",
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        amount=str(booking.amount_paid),
        recorded_by=actor.user_id,
    )

    if actor.is_admin:
        await emit_audit(
            audit,
            actor.user_id,
            "OFFLINE_PAYMENT",
            ENTITY_BOOKING,
            booking.id,
            {"booking_status": previous[0].value, "payment_status": previous[1].value},
            {"booking_status": booking.booking_status.value, "payment_status": booking.payment_status.value},
        )
    await notify_booking_confirmed(notifier, booking)
    return booking


def _complete_locked(booking: Booking) -> None:
    apply(booking, Transition.COMPLETE)
    record_transition("complete")


async def complete_booking(db: AsyncSession, booking_id: int, admin: CallerIdentity) -> Booking:
    """Mark a confirmed booking COMPLETED after the event took place."""
    try:
        booking = await load_booking(db, booking_id, for_update=True)
        _complete_locked(booking)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("booking_completed", booking_id=booking.id, admin_id=admin.user_id)
    return booking


async def admin_update_status(
    db: AsyncSession,
    booking_id: int,
    admin: CallerIdentity,
    target: BookingStatus,
    remarks: Optional[str],
    audit: Optional[AuditSink] = None,
) -> Booking:
    """
    Administrative status override. Only the moves the state machine allows
    (cancel, complete) are accepted; the old and new state are audited.
    """
    if target not in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
        raise InvalidStateTransition(f"Bookings cannot be moved to {target.value} by hand")

    try:
        booking = await load_booking(db, booking_id, for_update=True)
        previous = state_of(booking)
        if target is BookingStatus.CANCELLED:
            await _cancel_locked(db, booking, remarks)
        else:
            _complete_locked(booking)
        booking.admin_remarks = remarks
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "booking_status_overridden",
        booking_id=booking.id,
        admin_id=admin.user_id,
        old_status=previous[0].value,
        new_status=booking.booking_status.value,
    )
    await emit_audit(
        audit,
        admin.user_id,
        "UPDATE_BOOKING_STATUS",
        ENTITY_BOOKING,
        booking.id,
        {"booking_status": previous[0].value, "payment_status": previous[1].value},
        {
            "booking_status": booking.booking_status.value,
            "payment_status": booking.payment_status.value,
            "admin_remarks": remarks,
        },
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int, actor: CallerIdentity) -> Booking:
    return await load_booking(db, booking_id, actor)


def _apply_filters(query, filters: BookingFilters):
    if filters.booking_status is not None:
        query = query.where(Booking.booking_status == filters.booking_status)
    if filters.payment_status is not None:
        query = query.where(Booking.payment_status == filters.payment_status)
    if filters.event_id is not None:
        query = query.where(Booking.event_id == filters.event_id)
    if filters.search:
        query = query.where(Booking.booking_reference.contains(filters.search))
    return query


async def _paginate(db: AsyncSession, query, page: int, limit: int) -> tuple[list[Booking], int]:
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query.order_by(Booking.created_at.desc(), Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_user_bookings(
    db: AsyncSession,
    user_id: int,
    filters: Optional[BookingFilters] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    """Get a user's bookings, newest first."""
    query = _apply_filters(select(Booking).where(Booking.user_id == user_id), filters or BookingFilters())
    return await _paginate(db, query, page, limit)


async def list_bookings(
    db: AsyncSession,
    filters: Optional[BookingFilters] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    """Admin listing across all users."""
    query = select(Booking)
    filters = filters or BookingFilters()
    if filters.search:
        # Admins search by reference or booker email
        query = query.join(User, User.id == Booking.user_id).where(
            or_(
                Booking.booking_reference.contains(filters.search),
                User.email.contains(filters.search),
            )
        )
        filters = BookingFilters(filters.booking_status, filters.payment_status, filters.event_id)
    return await _paginate(db, _apply_filters(query, filters), page, limit)
