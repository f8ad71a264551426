from chessbook.schemas.event import EventResponse, EventListResponse
from chessbook.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingCreatedResponse,
    BookingListResponse,
)
from chessbook.schemas.payment import CreateOrderResponse, PaymentResponse, VerifyPaymentResponse

__all__ = [
    "EventResponse", "EventListResponse",
    "BookingCreate", "BookingResponse", "BookingCreatedResponse", "BookingListResponse",
    "CreateOrderResponse", "PaymentResponse", "VerifyPaymentResponse",
]
