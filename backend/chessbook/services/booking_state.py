"""
Booking state machine.

A booking's state is the pair (booking_status, payment_status). Every legal
move is listed in TRANSITIONS; anything not listed is rejected with the
state-conflict error that best describes why, and nothing is mutated.

    create           -> (PENDING, PENDING)
    confirm_payment  (PENDING, PENDING|FAILED)  -> (CONFIRMED, PAID)
    payment_failed   (PENDING, PENDING)         -> (PENDING, FAILED)
    settle_offline   (PENDING, PENDING)         -> (CONFIRMED, PAID)
    cancel           (PENDING, PENDING)         -> (CANCELLED, PENDING)
                     (PENDING, FAILED)          -> (CANCELLED, FAILED)
                     (CONFIRMED, PAID)          -> (CANCELLED, REFUNDED)
    complete         (CONFIRMED, PAID)          -> (COMPLETED, PAID)
    refund           (CANCELLED, PAID|REFUNDED) -> (CANCELLED, REFUNDED)

CANCELLED and COMPLETED are terminal for everything except recording the
refund of money collected before cancellation.
"""

from enum import Enum

from chessbook.core.errors import (
    AlreadyCancelled,
    AlreadyPaid,
    CannotCancelCompleted,
    InvalidStateTransition,
    RequestAlreadyProcessed,
)
from chessbook.models.booking import Booking
from chessbook.models.enums import BookingStatus as B
from chessbook.models.enums import PaymentStatus as P

State = tuple[B, P]


class Transition(str, Enum):
    CONFIRM_PAYMENT = "confirm_payment"
    PAYMENT_FAILED = "payment_failed"
    SETTLE_OFFLINE = "settle_offline"
    CANCEL = "cancel"
    COMPLETE = "complete"
    REFUND = "refund"


INITIAL_STATE: State = (B.PENDING, P.PENDING)

LEGAL_STATES: frozenset[State] = frozenset(
    {
        (B.PENDING, P.PENDING),
        (B.PENDING, P.FAILED),
        (B.CONFIRMED, P.PAID),
        (B.COMPLETED, P.PAID),
        (B.CANCELLED, P.PENDING),
        (B.CANCELLED, P.PAID),
        (B.CANCELLED, P.REFUNDED),
        (B.CANCELLED, P.FAILED),
    }
)

TRANSITIONS: dict[Transition, dict[State, State]] = {
    Transition.CONFIRM_PAYMENT: {
        (B.PENDING, P.PENDING): (B.CONFIRMED, P.PAID),
        (B.PENDING, P.FAILED): (B.CONFIRMED, P.PAID),
    },
    Transition.PAYMENT_FAILED: {
        (B.PENDING, P.PENDING): (B.PENDING, P.FAILED),
    },
    Transition.SETTLE_OFFLINE: {
        (B.PENDING, P.PENDING): (B.CONFIRMED, P.PAID),
    },
    Transition.CANCEL: {
        (B.PENDING, P.PENDING): (B.CANCELLED, P.PENDING),
        (B.PENDING, P.FAILED): (B.CANCELLED, P.FAILED),
        (B.CONFIRMED, P.PAID): (B.CANCELLED, P.REFUNDED),
    },
    Transition.COMPLETE: {
        (B.CONFIRMED, P.PAID): (B.COMPLETED, P.PAID),
    },
    Transition.REFUND: {
        (B.CANCELLED, P.PAID): (B.CANCELLED, P.REFUNDED),
        (B.CANCELLED, P.REFUNDED): (B.CANCELLED, P.REFUNDED),
    },
}


def state_of(booking: Booking) -> State:
    return booking.booking_status, booking.payment_status


def _rejection(transition: Transition, current: State) -> Exception:
    booking_status, payment_status = current

    if booking_status is B.COMPLETED:
        if transition is Transition.CANCEL:
            return CannotCancelCompleted()
        return RequestAlreadyProcessed("Booking is already completed")

    if booking_status is B.CANCELLED and transition is not Transition.REFUND:
        if transition in (Transition.CONFIRM_PAYMENT, Transition.SETTLE_OFFLINE):
            return AlreadyCancelled("Cannot confirm payment for cancelled booking")
        return AlreadyCancelled()

    if payment_status is P.PAID and transition in (
        Transition.CONFIRM_PAYMENT,
        Transition.SETTLE_OFFLINE,
        Transition.PAYMENT_FAILED,
    ):
        return AlreadyPaid()

    return InvalidStateTransition(
        f"Cannot {transition.value.replace('_', ' ')} a booking in state "
        f"{booking_status.value}/{payment_status.value}"
    )


def next_state(transition: Transition, current: State) -> State:
    target = TRANSITIONS[transition].get(current)
    if target is None:
        raise _rejection(transition, current)
    return target


def apply(booking: Booking, transition: Transition) -> State:
    """Move the booking along `transition` in memory. Returns the previous state."""
    previous = state_of(booking)
    booking.booking_status, booking.payment_status = next_state(transition, previous)
    return previous
