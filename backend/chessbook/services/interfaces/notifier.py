"""
Notification delivery interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class BookingConfirmedNotice:
    booking_id: int
    booking_reference: str
    user_email: str
    user_name: str
    event_name: str
    amount: Decimal
    participant_count: int


class BookingNotifier(ABC):
    @abstractmethod
    async def booking_confirmed(self, notice: BookingConfirmedNotice) -> None:
        """Deliver the "booking confirmed" message. May raise; callers never roll back on it."""
        pass
