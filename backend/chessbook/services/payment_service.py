"""
Payment reconciliation.

Turns gateway evidence into booking state changes, exactly once.

  create_order         gateway order first, then a PENDING Payment row
  verify_and_complete  signature check -> lock payment -> lock booking
                       -> Payment COMPLETED + booking CONFIRMED/PAID -> commit
  record_payment_failure  PENDING -> FAILED for both, retry stays possible
  initiate_refund      claim COMPLETED -> REFUND_PENDING, gateway refund,
                       then Payment REFUNDED (claim released if the gateway fails)

IDEMPOTENCY
===========

Checkout success callbacks get retried by browsers and by the gateway. A
second verify for the same (order_id, payment_id) finds the Payment already
COMPLETED with that gateway_payment_id and returns the booking unchanged:
no second transition, no second notification. The Payment row is locked
before it is inspected, so two concurrent verifies serialize and the loser
sees the winner's result.

A signature that does not verify is rejected before any row is read.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chessbook.core.errors import (
    AlreadyCancelled,
    AlreadyPaid,
    BookingNotFound,
    FeatureDisabled,
    InvalidSignature,
    InvariantViolation,
    PaymentNotFound,
    PaymentNotRefundable,
    RefundRequiresCancellation,
    RequestAlreadyProcessed,
    ValidationError,
)
from chessbook.core.feature_flags import BookingPolicy
from chessbook.core.logging import get_logger
from chessbook.core.metrics import record_refund, record_transition, record_verification
from chessbook.core.security import CallerIdentity
from chessbook.models.booking import Booking
from chessbook.models.enums import (
    BookingStatus,
    GatewayKind,
    PaymentRecordStatus,
    PaymentStatus,
)
from chessbook.models.payment import Payment
from chessbook.services.audit import ENTITY_PAYMENT, emit_audit
from chessbook.services.booking_service import load_booking, confirm_via_payment
from chessbook.services.booking_state import Transition, apply, next_state, state_of
from chessbook.services.interfaces.audit import AuditSink
from chessbook.services.interfaces.notifier import BookingNotifier
from chessbook.services.interfaces.payment_gateway import PaymentGateway
from chessbook.services.notifications import notify_booking_confirmed

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise."""
    return int((Decimal(amount) * 100).to_integral_value())


async def _lock_payment(db: AsyncSession, **criteria) -> Optional[Payment]:
    query = select(Payment).filter_by(**criteria).with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def _swap_payment_status(
    db: AsyncSession,
    payment_id: int,
    expected: PaymentRecordStatus,
    new: PaymentRecordStatus,
) -> bool:
    """Conditional status update; True only for the caller that moved the row."""
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.payment_status == expected)
        .values(payment_status=new)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def create_order(
    db: AsyncSession,
    gateway: PaymentGateway,
    booking_id: int,
    actor: CallerIdentity,
    policy: BookingPolicy,
) -> dict:
    """
    Open a gateway order for the booking's frozen amount.

    The Payment row is written only after the gateway answered, so a timeout
    never leaves a local record pointing at an order that does not exist.
    """
    if not policy.enable_online_payment:
        raise FeatureDisabled("Online payments are currently disabled")

    booking = await load_booking(db, booking_id, actor)
    if booking.payment_status is PaymentStatus.PAID:
        raise AlreadyPaid()
    if booking.booking_status is BookingStatus.CANCELLED:
        raise AlreadyCancelled("Cannot pay for a cancelled booking")
    if booking.booking_status is BookingStatus.COMPLETED:
        raise RequestAlreadyProcessed("Booking is already completed")

    amount = to_minor_units(booking.amount_paid)
    if amount <= 0:
        raise ValidationError("Nothing to collect online for this booking; settle it offline")

    # Gateway errors propagate before anything is written
    order = await gateway.create_order(amount, policy.currency, booking.booking_reference)

    try:
        db.add(
            Payment(
                booking_id=booking.id,
                transaction_id=order.order_id,
                payment_gateway=GatewayKind.ONLINE_GATEWAY,
                amount=booking.amount_paid,
                currency=order.currency,
                payment_status=PaymentRecordStatus.PENDING,
                gateway_response=json.dumps(order.raw, default=str),
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "payment_order_created",
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        order_id=order.order_id,
        amount=order.amount,
    )
    return {
        "order_id": order.order_id,
        "amount": order.amount,
        "currency": order.currency,
        "booking_id": booking.id,
        "booking_reference": booking.booking_reference,
    }


async def verify_and_complete(
    db: AsyncSession,
    gateway: PaymentGateway,
    order_id: str,
    payment_id: str,
    signature: str,
    notifier: BookingNotifier,
) -> tuple[Booking, bool]:
    """
    Verify checkout evidence and confirm the booking.

    Returns (booking, transitioned). transitioned is False for a replay of an
    already-applied confirmation.

    Raises:
        InvalidSignature: evidence failed verification, nothing read or written
        PaymentNotFound: no order with that id
        RequestAlreadyProcessed: order settled by a different payment, or refunded
        AlreadyCancelled / AlreadyPaid: booking moved on since the order was opened
    """
    if not (order_id and payment_id and signature) or not gateway.verify_signature(
        order_id, payment_id, signature
    ):
        record_verification("invalid_signature")
        logger.warning(
            "payment_signature_invalid",
            order_id=order_id,
            payment_id=payment_id,
        )
        raise InvalidSignature()

    try:
        payment = await _lock_payment(db, transaction_id=order_id)
        if payment is None:
            raise PaymentNotFound(order_id)

        if payment.payment_status is PaymentRecordStatus.COMPLETED:
            if payment.gateway_payment_id == payment_id:
                booking = await load_booking(db, payment.booking_id)
                await db.commit()
                record_verification("replay")
                logger.info("payment_verify_replay", order_id=order_id, payment_id=payment_id)
                return booking, False
            raise RequestAlreadyProcessed("Order was already settled by another payment")
        if payment.payment_status in (PaymentRecordStatus.REFUND_PENDING, PaymentRecordStatus.REFUNDED):
            raise RequestAlreadyProcessed("Payment was already refunded")

        try:
            booking = await load_booking(db, payment.booking_id, for_update=True)
        except BookingNotFound as e:
            logger.critical(
                "payment_booking_missing",
                order_id=order_id,
                booking_id=payment.booking_id,
                error=str(e),
            )
            raise InvariantViolation("Payment references a booking that does not exist")

        if state_of(booking) == (BookingStatus.CONFIRMED, PaymentStatus.PAID):
            # Paid through another order (or offline) meanwhile
            raise AlreadyPaid("Booking was already paid through another payment")

        transitioned = confirm_via_payment(booking)
        payment.payment_status = PaymentRecordStatus.COMPLETED
        payment.gateway_payment_id = payment_id
        payment.failure_reason = None
        payment.gateway_response = json.dumps(
            {"razorpay_order_id": order_id, "razorpay_payment_id": payment_id}
        )
        await db.commit()
    except Exception:
        await db.rollback()
        record_verification("conflict")
        raise

    record_verification("completed")
    logger.info(
        "payment_verified",
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        order_id=order_id,
        payment_id=payment_id,
    )
    if transitioned:
        await notify_booking_confirmed(notifier, booking)
    return booking, transitioned


async def record_payment_failure(
    db: AsyncSession,
    order_id: str,
    reason: Optional[str],
    actor: Optional[CallerIdentity] = None,
) -> Payment:
    """
    Gateway reported a failed attempt. The booking keeps its slots and can be
    paid again through a new order.
    """
    try:
        payment = await _lock_payment(db, transaction_id=order_id)
        if payment is None:
            raise PaymentNotFound(order_id)
        # Ownership is checked through the booking
        booking = await load_booking(db, payment.booking_id, actor, for_update=True)

        if payment.payment_status is not PaymentRecordStatus.PENDING:
            await db.commit()
            return payment

        payment.payment_status = PaymentRecordStatus.FAILED
        payment.failure_reason = (reason or "Payment failed")[:255]
        if state_of(booking) == (BookingStatus.PENDING, PaymentStatus.PENDING):
            apply(booking, Transition.PAYMENT_FAILED)
            record_transition("payment_failed")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "payment_failed",
        order_id=order_id,
        booking_id=booking.id,
        reason=payment.failure_reason,
    )
    return payment


async def initiate_refund(
    db: AsyncSession,
    gateway: PaymentGateway,
    payment_id: int,
    admin: CallerIdentity,
    policy: BookingPolicy,
    audit: Optional[AuditSink] = None,
) -> Payment:
    """
    Refund a completed payment of a cancelled booking.

    The payment is first claimed (COMPLETED -> REFUND_PENDING) in its own
    transaction, so of two concurrent refunds only one reaches the gateway.
    If the gateway call fails the claim is released back to COMPLETED and
    the admin can retry.
    """
    if not policy.allow_refunds:
        raise FeatureDisabled("Refunds are currently disabled")

    try:
        result = await db.execute(
            select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise PaymentNotFound(payment_id)
        if payment.payment_status is not PaymentRecordStatus.COMPLETED:
            raise PaymentNotRefundable(
                f"Payment is {payment.payment_status.value}, only completed payments can be refunded"
            )

        booking = await load_booking(db, payment.booking_id)
        if booking.booking_status is not BookingStatus.CANCELLED:
            raise RefundRequiresCancellation()
        next_state(Transition.REFUND, state_of(booking))

        amount = payment.amount
        gateway_kind = payment.payment_gateway
        gateway_payment_id = payment.gateway_payment_id
        booking_id = booking.id

        if not await _swap_payment_status(
            db, payment_id, PaymentRecordStatus.COMPLETED, PaymentRecordStatus.REFUND_PENDING
        ):
            raise PaymentNotRefundable("A refund for this payment is already in progress")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    refund_response = None
    if gateway_kind is GatewayKind.ONLINE_GATEWAY:
        try:
            refund = await gateway.refund(gateway_payment_id, to_minor_units(amount))
        except Exception:
            record_refund(gateway_kind.value.lower(), success=False)
            logger.error("payment_refund_failed", payment_id=payment_id, booking_id=booking_id)
            await _swap_payment_status(
                db, payment_id, PaymentRecordStatus.REFUND_PENDING, PaymentRecordStatus.COMPLETED
            )
            await db.commit()
            raise
        refund_response = refund.raw

    try:
        payment = await _lock_payment(db, id=payment_id)
        if payment.payment_status is not PaymentRecordStatus.REFUND_PENDING:
            raise InvariantViolation(f"Refund claim on payment {payment_id} was lost")
        booking = await load_booking(db, payment.booking_id, for_update=True)

        payment.payment_status = PaymentRecordStatus.REFUNDED
        payment.refund_amount = amount
        payment.refund_date = datetime.now(timezone.utc)
        if refund_response is not None:
            payment.gateway_response = json.dumps({"refund": refund_response}, default=str)
        apply(booking, Transition.REFUND)
        await db.commit()
    except Exception as e:
        await db.rollback()
        # Money may have moved; the row stays REFUND_PENDING for reconciliation
        logger.critical("payment_refund_unrecorded", payment_id=payment_id, booking_id=booking_id, error=str(e))
        raise

    record_refund(gateway_kind.value.lower(), success=True)
    logger.info(
        "payment_refunded",
        payment_id=payment.id,
        booking_id=booking.id,
        amount=str(amount),
        gateway=gateway_kind.value,
        admin_id=admin.user_id,
    )
    await emit_audit(
        audit,
        admin.user_id,
        "REFUND_PAYMENT",
        ENTITY_PAYMENT,
        payment.id,
        {"payment_status": PaymentRecordStatus.COMPLETED.value},
        {"payment_status": payment.payment_status.value, "refund_amount": str(amount)},
    )
    return payment


async def list_payments(db: AsyncSession, booking_id: int, actor: CallerIdentity) -> list[Payment]:
    """Payments of one booking, newest first."""
    await load_booking(db, booking_id, actor)
    result = await db.execute(
        select(Payment)
        .where(Payment.booking_id == booking_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
    )
    return list(result.scalars().all())
