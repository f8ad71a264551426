"""
Pydantic schemas for payment endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from chessbook.models.enums import GatewayKind, PaymentRecordStatus
from chessbook.schemas.booking import BookingResponse


class CreateOrderRequest(BaseModel):
    booking_id: int = Field(..., gt=0)


class CreateOrderResponse(BaseModel):
    order_id: str
    amount: int  # minor units
    currency: str
    booking_id: int
    booking_reference: str
    key_id: str


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class VerifyPaymentResponse(BaseModel):
    booking: BookingResponse
    already_confirmed: bool


class PaymentFailureRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=255)


class OfflinePaymentRequest(BaseModel):
    booking_id: int = Field(..., gt=0)
    evidence: dict[str, Any] = Field(default_factory=dict)


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    transaction_id: str
    gateway_payment_id: Optional[str]
    payment_gateway: GatewayKind
    amount: Decimal
    currency: str
    payment_status: PaymentRecordStatus
    failure_reason: Optional[str]
    refund_amount: Optional[Decimal]
    refund_date: Optional[datetime]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
