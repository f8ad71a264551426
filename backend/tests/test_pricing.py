"""
Tests for the pricing engine.
"""

from decimal import Decimal

import pytest

from chessbook.core.errors import ValidationError
from chessbook.models.enums import ConcessionType
from chessbook.services.pricing import calculate_booking_amount, participant_fee

TEN = Decimal("10")


def test_offline_single_participant_adds_platform_fee():
    """500 entry + 10 platform fee for one offline participant."""
    quote = calculate_booking_amount(Decimal("500"), [False], False, ConcessionType.NONE, 0, TEN)
    assert quote.event_fee == Decimal("500.00")
    assert quote.platform_fee == Decimal("10.00")
    assert quote.total_amount == Decimal("510.00")
    assert quote.participant_count == 1
    assert quote.govt_student_count == 0


def test_online_percentage_concession():
    """One govt student at 20% off: 500 + 400 = 900, no platform fee online."""
    quote = calculate_booking_amount(
        Decimal("500"), [False, True], True, ConcessionType.PERCENTAGE, Decimal("20"), TEN
    )
    assert quote.event_fee == Decimal("900.00")
    assert quote.platform_fee == Decimal("0.00")
    assert quote.total_amount == Decimal("900.00")
    assert quote.concession_applied == Decimal("100.00")
    assert quote.govt_student_count == 1
    assert quote.participant_count == 2


def test_rupees_concession_is_floored_at_zero():
    """A flat concession larger than the fee makes the participant free, never negative."""
    fee, discount = participant_fee(Decimal("300"), True, ConcessionType.RUPEES, Decimal("500"))
    assert fee == Decimal("0.00")
    assert discount == Decimal("300.00")

    quote = calculate_booking_amount(Decimal("300"), [True], False, ConcessionType.RUPEES, Decimal("500"), TEN)
    assert quote.event_fee == Decimal("0.00")
    assert quote.concession_applied == Decimal("300.00")
    assert quote.total_amount == Decimal("10.00")


def test_concession_ignored_for_non_students_and_without_policy():
    no_policy = calculate_booking_amount(Decimal("500"), [True], True, ConcessionType.NONE, Decimal("20"), TEN)
    assert no_policy.total_amount == Decimal("500.00")
    assert no_policy.govt_student_count == 0

    zero_value = calculate_booking_amount(Decimal("500"), [True], True, ConcessionType.RUPEES, 0, TEN)
    assert zero_value.total_amount == Decimal("500.00")
    assert zero_value.govt_student_count == 0

    non_student = calculate_booking_amount(Decimal("500"), [False], True, ConcessionType.RUPEES, Decimal("50"), TEN)
    assert non_student.total_amount == Decimal("500.00")


def test_platform_fee_scales_with_participants_and_can_be_disabled():
    quote = calculate_booking_amount(Decimal("100"), [False, False, False], False, ConcessionType.NONE, 0, TEN)
    assert quote.platform_fee == Decimal("30.00")
    assert quote.total_amount == Decimal("330.00")

    no_fee = calculate_booking_amount(Decimal("100"), [False, False, False], False, ConcessionType.NONE, 0, Decimal("0"))
    assert no_fee.total_amount == Decimal("300.00")


def test_percentage_rounding_half_up():
    """12.5% of 99.99 = 12.49875 -> fee 87.49 after rounding to paise."""
    quote = calculate_booking_amount(
        Decimal("99.99"), [True], True, ConcessionType.PERCENTAGE, Decimal("12.5"), TEN
    )
    assert quote.event_fee == Decimal("87.49")
    assert quote.concession_applied == Decimal("12.50")


def test_same_inputs_same_quote():
    args = (Decimal("750"), [True, False, True], False, ConcessionType.PERCENTAGE, Decimal("15"), TEN)
    assert calculate_booking_amount(*args) == calculate_booking_amount(*args)


def test_zero_participants_rejected():
    with pytest.raises(ValidationError):
        calculate_booking_amount(Decimal("500"), [], False, ConcessionType.NONE, 0, TEN)


def test_negative_fee_rejected():
    with pytest.raises(ValidationError):
        calculate_booking_amount(Decimal("-1"), [False], False, ConcessionType.NONE, 0, TEN)
