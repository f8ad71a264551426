"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from chessbook.models.enums import BookingStatus, PaymentStatus


class ParticipantSelectionIn(BaseModel):
    participant_id: int = Field(..., gt=0)
    category_code: Optional[str] = Field(None, max_length=10)


class BookingCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    participants: list[ParticipantSelectionIn] = Field(..., min_length=1, max_length=50)


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingParticipantResponse(BaseModel):
    participant_id: int
    full_name: str
    is_govt_student: bool


class BookingResponse(BaseModel):
    id: int
    booking_reference: str
    event_id: int
    event_name: Optional[str] = None
    user_id: int
    booking_status: BookingStatus
    payment_status: PaymentStatus
    amount_paid: Decimal
    participant_count: int
    cancellation_reason: Optional[str] = None
    admin_remarks: Optional[str] = None
    participants: list[BookingParticipantResponse] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            booking_reference=booking.booking_reference,
            event_id=booking.event_id,
            event_name=booking.event.name if booking.event else None,
            user_id=booking.user_id,
            booking_status=booking.booking_status,
            payment_status=booking.payment_status,
            amount_paid=booking.amount_paid,
            participant_count=booking.participant_count,
            cancellation_reason=booking.cancellation_reason,
            admin_remarks=booking.admin_remarks,
            participants=[
                BookingParticipantResponse(
                    participant_id=link.participant_id,
                    full_name=link.participant.full_name,
                    is_govt_student=link.participant.is_govt_student,
                )
                for link in booking.participant_links
            ],
            created_at=booking.created_at,
        )


class PriceBreakdown(BaseModel):
    event_fee: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    concession_applied: Decimal
    govt_student_count: int
    participant_count: int


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    pricing: PriceBreakdown


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    limit: int


class BookingStatusUpdate(BaseModel):
    booking_status: BookingStatus
    admin_remarks: Optional[str] = Field(None, max_length=500)
