"""
Closed status vocabularies.

Stored as VARCHAR with a CHECK constraint (native_enum=False) so the same
schema works on PostgreSQL and SQLite, while Python code only ever sees the
enum members.
"""

import enum


class UserRole(str, enum.Enum):
    PLAYER = "PLAYER"
    ORGANIZER = "ORGANIZER"
    ADMIN = "ADMIN"


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHERS = "OTHERS"


class EventStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ConcessionType(str, enum.Enum):
    NONE = "NONE"
    RUPEES = "RUPEES"
    PERCENTAGE = "PERCENTAGE"


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    """Booking-level payment summary. This is what consumers read."""

    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class PaymentRecordStatus(str, enum.Enum):
    """
    Status of one Payment row (one gateway order or offline settlement).

    REFUND_PENDING marks a refund claimed by one admin request while the
    gateway call is in flight.
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUND_PENDING = "REFUND_PENDING"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class GatewayKind(str, enum.Enum):
    ONLINE_GATEWAY = "ONLINE_GATEWAY"
    OFFLINE = "OFFLINE"
