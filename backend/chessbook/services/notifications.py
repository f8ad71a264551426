"""
Booking confirmation notifications.

Delivery is an external concern. The default LogNotifier only writes a
structured log line; a mailer implementation plugs in behind the same
BookingNotifier interface. Notification failures never undo a committed
booking.
"""

from chessbook.core.logging import get_logger
from chessbook.models.booking import Booking
from chessbook.services.interfaces.notifier import BookingConfirmedNotice, BookingNotifier

logger = get_logger(__name__)


class LogNotifier(BookingNotifier):
    async def booking_confirmed(self, notice: BookingConfirmedNotice) -> None:
        logger.info(
            "booking_confirmation_sent",
            booking_id=notice.booking_id,
            booking_reference=notice.booking_reference,
            email=notice.user_email,
            event=notice.event_name,
            amount=str(notice.amount),
            participants=notice.participant_count,
        )


def build_notice(booking: Booking) -> BookingConfirmedNotice:
    return BookingConfirmedNotice(
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        user_email=booking.user.email,
        user_name=booking.user.full_name,
        event_name=booking.event.name,
        amount=booking.amount_paid,
        participant_count=booking.participant_count,
    )


async def notify_booking_confirmed(notifier: BookingNotifier, booking: Booking) -> None:
    """Send the confirmation. Call only after the confirming transaction committed."""
    try:
        await notifier.booking_confirmed(build_notice(booking))
    except Exception as e:
        logger.error(
            "booking_confirmation_failed",
            booking_id=booking.id,
            error=str(e),
            exc_info=True,
        )
