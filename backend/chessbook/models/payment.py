"""
Payment model: immutable evidence of one settlement attempt.

A booking may have several payments (gateway retries). The booking's
payment_status is the authoritative summary; these rows are the audit trail.
transaction_id is the gateway order id, or OFFLINE-<booking_reference>.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from chessbook.db.base import Base, TimestampMixin
from chessbook.models.enums import GatewayKind, PaymentRecordStatus


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    transaction_id = Column(String(100), nullable=False)
    gateway_payment_id = Column(String(100), nullable=True)
    payment_gateway = Column(
        Enum(GatewayKind, native_enum=False, create_constraint=True, length=20, name="payment_gateway"),
        nullable=False,
    )
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    payment_status = Column(
        Enum(PaymentRecordStatus, native_enum=False, create_constraint=True, length=20, name="payment_record_status"),
        nullable=False,
        default=PaymentRecordStatus.PENDING,
        index=True,
    )
    gateway_response = Column(Text, nullable=True)
    failure_reason = Column(String(255), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_payments_transaction_id"),
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, txn={self.transaction_id}, status={self.payment_status})>"
