"""
Pricing engine.

Computes what a booking costs from the event fee, each participant's
concession eligibility and the online/offline platform fee policy.

The function is pure: same inputs, same quote. Only total_amount is
persisted (as Booking.amount_paid); the breakdown can always be re-derived
from the event row and the participant flags for auditing.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from chessbook.core.errors import ValidationError
from chessbook.models.enums import ConcessionType

CENTS = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class PriceQuote:
    event_fee: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    concession_applied: Decimal
    govt_student_count: int
    participant_count: int


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def participant_fee(
    entry_fee: Decimal,
    is_govt_student: bool,
    concession_type: ConcessionType,
    concession_value: Decimal,
) -> tuple[Decimal, Decimal]:
    """Return (fee, discount) for one participant. Fee never goes below zero."""
    if not is_govt_student or concession_type is ConcessionType.NONE or concession_value <= 0:
        return entry_fee, ZERO

    if concession_type is ConcessionType.RUPEES:
        discount = concession_value
    else:
        discount = entry_fee * concession_value / Decimal(100)

    discount = min(discount, entry_fee)
    return _money(entry_fee - discount), _money(discount)


def calculate_booking_amount(
    entry_fee,
    govt_student_flags: Sequence[bool],
    is_online: bool,
    concession_type: ConcessionType,
    concession_value,
    offline_platform_fee,
) -> PriceQuote:
    """
    Price a booking.

    Args:
        entry_fee: per-participant event fee (>= 0)
        govt_student_flags: one isGovtStudent flag per participant, in booking order
        is_online: online events carry no platform fee
        concession_type / concession_value: event concession policy
        offline_platform_fee: per-participant platform fee for offline events
    """
    if not govt_student_flags:
        raise ValidationError("At least one participant is required")

    fee = _money(entry_fee)
    value = _money(concession_value or 0)
    if fee < 0 or value < 0:
        raise ValidationError("Fees and concessions must be non-negative")

    event_fee = ZERO
    concession_total = ZERO
    govt_students = 0

    policy_active = concession_type is not ConcessionType.NONE and value > 0

    for is_govt_student in govt_student_flags:
        amount, discount = participant_fee(fee, is_govt_student, concession_type, value)
        if is_govt_student and policy_active:
            govt_students += 1
        event_fee += amount
        concession_total += discount

    count = len(govt_student_flags)
    platform_fee = ZERO if is_online else _money(offline_platform_fee) * count

    return PriceQuote(
        event_fee=_money(event_fee),
        platform_fee=_money(platform_fee),
        total_amount=_money(event_fee + platform_fee),
        concession_applied=_money(concession_total),
        govt_student_count=govt_students,
        participant_count=count,
    )
