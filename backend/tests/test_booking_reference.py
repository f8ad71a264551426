"""
Tests for booking reference generation.
"""

import random
import re
from datetime import date

from chessbook.services.booking_reference import generate_booking_reference


def test_reference_format():
    ref = generate_booking_reference("CC", today=date(2025, 6, 15))
    assert re.fullmatch(r"CC-20250615-\d{4}", ref)
    assert 1000 <= int(ref.rsplit("-", 1)[1]) <= 9999


def test_reference_uses_prefix_and_rng():
    a = generate_booking_reference("KSCA", today=date(2026, 1, 2), rng=random.Random(7))
    b = generate_booking_reference("KSCA", today=date(2026, 1, 2), rng=random.Random(7))
    assert a == b
    assert a.startswith("KSCA-20260102-")
