"""
Payment endpoints: gateway checkout, verification and offline settlement.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.api.deps import get_gateway, get_notifier, get_audit_sink, get_policy
from chessbook.core.config import get_settings
from chessbook.core.feature_flags import BookingPolicy
from chessbook.core.security import CallerIdentity, get_current_identity
from chessbook.db.session import get_db
from chessbook.schemas.booking import BookingResponse
from chessbook.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    OfflinePaymentRequest,
    PaymentFailureRequest,
    PaymentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from chessbook.services import booking_service, payment_service
from chessbook.services.interfaces.audit import AuditSink
from chessbook.services.interfaces.notifier import BookingNotifier
from chessbook.services.interfaces.payment_gateway import PaymentGateway

settings = get_settings()
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-order", response_model=CreateOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: CreateOrderRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    policy: BookingPolicy = Depends(get_policy),
    gateway: PaymentGateway = Depends(get_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Open a gateway order for a pending booking. Returns what the checkout widget needs."""
    order = await payment_service.create_order(db, gateway, body.booking_id, identity, policy)
    return CreateOrderResponse(**order, key_id=settings.RAZORPAY_KEY_ID)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: BookingNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    """
    Verify the checkout signature and confirm the booking.
    Safe to call more than once with the same evidence.
    """
    booking, transitioned = await payment_service.verify_and_complete(
        db,
        gateway,
        body.razorpay_order_id,
        body.razorpay_payment_id,
        body.razorpay_signature,
        notifier,
    )
    return VerifyPaymentResponse(
        booking=BookingResponse.from_booking(booking),
        already_confirmed=not transitioned,
    )


@router.post("/failure", response_model=PaymentResponse)
async def payment_failure(
    body: PaymentFailureRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Record a failed checkout attempt. The booking stays pending and can be paid again."""
    return await payment_service.record_payment_failure(db, body.razorpay_order_id, body.reason, identity)


@router.post("/offline", response_model=BookingResponse)
async def offline_payment(
    body: OfflinePaymentRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    policy: BookingPolicy = Depends(get_policy),
    notifier: BookingNotifier = Depends(get_notifier),
    audit: AuditSink = Depends(get_audit_sink),
    db: AsyncSession = Depends(get_db),
):
    """Settle a pending booking with evidence of an offline payment."""
    booking = await booking_service.record_offline_payment(
        db, body.booking_id, identity, body.evidence, policy, notifier, audit
    )
    return BookingResponse.from_booking(booking)


@router.get("/booking/{booking_id}", response_model=list[PaymentResponse])
async def list_booking_payments(
    booking_id: int,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.list_payments(db, booking_id, identity)
