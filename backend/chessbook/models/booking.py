"""
Booking model and participant links.

Key design decisions:
- booking_reference is unique and never updated; collisions are resolved by
  retrying the whole create unit (see services/booking_service.py).
- amount_paid is the frozen quote from the pricing engine. Nothing recomputes
  it, not even refunds.
- participant_count is stored so cancellation releases exactly what was
  reserved even if links are later edited by an admin.
- The joint (booking_status, payment_status) CHECK mirrors the state table in
  services/booking_state.py.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from chessbook.db.base import Base, TimestampMixin
from chessbook.models.enums import BookingStatus, PaymentStatus


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(20), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    booking_status = Column(
        Enum(BookingStatus, native_enum=False, create_constraint=True, length=20, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status = Column(
        Enum(PaymentStatus, native_enum=False, create_constraint=True, length=20, name="booking_payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    amount_paid = Column(Numeric(10, 2), nullable=False)
    participant_count = Column(Integer, nullable=False)
    cancellation_reason = Column(String(500), nullable=True)
    admin_remarks = Column(String(500), nullable=True)

    event = relationship("Event", lazy="selectin")
    user = relationship("User", lazy="selectin")
    participant_links = relationship(
        "BookingParticipant",
        back_populates="booking",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("booking_reference", name="uq_bookings_booking_reference"),
        CheckConstraint("participant_count > 0", name="check_booking_participant_count_positive"),
        CheckConstraint("amount_paid >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint(
            "(booking_status = 'PENDING' AND payment_status IN ('PENDING', 'FAILED'))"
            " OR (booking_status = 'CONFIRMED' AND payment_status = 'PAID')"
            " OR (booking_status = 'COMPLETED' AND payment_status = 'PAID')"
            " OR booking_status = 'CANCELLED'",
            name="check_booking_joint_state",
        ),
        Index("ix_bookings_event_status", "event_id", "booking_status", "payment_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref={self.booking_reference}, "
            f"status={self.booking_status}, payment={self.payment_status})>"
        )


class BookingParticipant(Base):
    __tablename__ = "booking_participants"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id = Column(Integer, ForeignKey("participants.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)

    booking = relationship("Booking", back_populates="participant_links")
    participant = relationship("Participant", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("booking_id", "participant_id", name="uq_booking_participant"),
    )
