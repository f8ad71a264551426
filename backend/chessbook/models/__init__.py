from chessbook.models.user import User, Participant
from chessbook.models.event import Event, Category, event_categories
from chessbook.models.booking import Booking, BookingParticipant
from chessbook.models.payment import Payment

__all__ = [
    "User", "Participant",
    "Event", "Category", "event_categories",
    "Booking", "BookingParticipant",
    "Payment",
]
