"""
Admin endpoints: booking oversight, status overrides, refunds and flags.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.api.deps import get_audit_sink, get_gateway, get_policy
from chessbook.core.feature_flags import BookingPolicy, feature_flags
from chessbook.core.security import CallerIdentity, require_admin
from chessbook.db.session import get_db
from chessbook.models.enums import BookingStatus, PaymentStatus
from chessbook.schemas.booking import BookingListResponse, BookingResponse, BookingStatusUpdate
from chessbook.schemas.payment import PaymentResponse
from chessbook.services import booking_service, payment_service
from chessbook.services.booking_service import BookingFilters
from chessbook.services.cache_service import invalidate_event_cache
from chessbook.services.interfaces.audit import AuditSink
from chessbook.services.interfaces.payment_gateway import PaymentGateway

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    booking_status: Optional[BookingStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    event_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    bookings, total = await booking_service.list_bookings(
        db,
        BookingFilters(booking_status, payment_status, event_id, search),
        page,
        limit,
    )
    return BookingListResponse(
        bookings=[BookingResponse.from_booking(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
    )


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    body: BookingStatusUpdate,
    admin: CallerIdentity = Depends(require_admin),
    audit: AuditSink = Depends(get_audit_sink),
    db: AsyncSession = Depends(get_db),
):
    """Cancel or complete a booking on behalf of the organizer. Audited."""
    booking = await booking_service.admin_update_status(
        db, booking_id, admin, body.booking_status, body.admin_remarks, audit
    )
    if booking.booking_status is BookingStatus.CANCELLED:
        await invalidate_event_cache(booking.event_id)
    return BookingResponse.from_booking(booking)


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: int,
    admin: CallerIdentity = Depends(require_admin),
    policy: BookingPolicy = Depends(get_policy),
    gateway: PaymentGateway = Depends(get_gateway),
    audit: AuditSink = Depends(get_audit_sink),
    db: AsyncSession = Depends(get_db),
):
    """Refund a completed payment of a cancelled booking."""
    return await payment_service.initiate_refund(db, gateway, payment_id, admin, policy, audit)


@router.post("/settings/invalidate")
async def invalidate_feature_flags(admin: CallerIdentity = Depends(require_admin)):
    """Drop the cached feature-flag snapshot so the next request reloads it."""
    feature_flags.invalidate()
    return {"status": "ok"}
