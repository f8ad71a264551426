"""
Booking reference generator.

Format: <PREFIX>-<YYYYMMDD>-<NNNN>, e.g. CC-20250615-1234.
Human-shareable and date-scoped, not unique by construction: the unique
constraint on bookings.booking_reference is the guarantee, and
create_booking retries with a fresh suffix on collision.
"""

import random
from datetime import date
from typing import Optional

_system_random = random.SystemRandom()


def generate_booking_reference(
    prefix: str,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> str:
    today = today or date.today()
    suffix = (rng or _system_random).randint(1000, 9999)
    return f"{prefix}-{today:%Y%m%d}-{suffix}"
