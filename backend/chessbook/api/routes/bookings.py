"""
Booking endpoints: create, list, show and cancel.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.api.deps import get_policy
from chessbook.core.feature_flags import BookingPolicy
from chessbook.core.logging import get_logger
from chessbook.core.security import CallerIdentity, get_current_identity
from chessbook.db.session import get_db
from chessbook.models.enums import BookingStatus, PaymentStatus
from chessbook.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingCreatedResponse,
    BookingListResponse,
    BookingResponse,
    PriceBreakdown,
)
from chessbook.services import booking_service
from chessbook.services.booking_service import BookingFilters, ParticipantSelection
from chessbook.services.cache_service import invalidate_event_cache

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    identity: CallerIdentity = Depends(get_current_identity),
    policy: BookingPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_db),
):
    """
    Book participants into an event.

    Slots are reserved atomically; when the event is full the request fails
    with 409 INSUFFICIENT_SLOTS and nothing is written. The booking starts
    PENDING until payment is verified or settled offline.
    """
    booking, quote = await booking_service.create_booking(
        db,
        identity.user_id,
        booking_data.event_id,
        [ParticipantSelection(p.participant_id, p.category_code) for p in booking_data.participants],
        policy,
    )
    # Slot counter changed
    await invalidate_event_cache(booking.event_id)
    return BookingCreatedResponse(
        booking=BookingResponse.from_booking(booking),
        pricing=PriceBreakdown(
            event_fee=quote.event_fee,
            platform_fee=quote.platform_fee,
            total_amount=quote.total_amount,
            concession_applied=quote.concession_applied,
            govt_student_count=quote.govt_student_count,
            participant_count=quote.participant_count,
        ),
    )


@router.get("/", response_model=BookingListResponse)
async def list_user_bookings(
    booking_status: Optional[BookingStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    event_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's bookings, newest first."""
    bookings, total = await booking_service.list_user_bookings(
        db,
        identity.user_id,
        BookingFilters(booking_status, payment_status, event_id),
        page,
        limit,
    )
    return BookingListResponse(
        bookings=[BookingResponse.from_booking(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id, identity)
    return BookingResponse.from_booking(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    body: Optional[BookingCancel] = None,
    identity: CallerIdentity = Depends(get_current_identity),
    policy: BookingPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its slots back to the event."""
    booking = await booking_service.cancel_booking(
        db,
        booking_id,
        identity,
        body.reason if body else None,
        policy,
    )
    await invalidate_event_cache(booking.event_id)
    return BookingResponse.from_booking(booking)
