"""Initial schema: users, participants, categories, events, bookings, payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _status(name: str, values: tuple[str, ...], **kwargs) -> sa.Column:
    return sa.Column(
        name,
        sa.Enum(*values, native_enum=False, create_constraint=True, length=20, name=f"{name}_enum"),
        **kwargs,
    )


BOOKING_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED")
BOOKING_PAYMENT_STATUSES = ("PENDING", "PAID", "REFUNDED", "FAILED")
PAYMENT_RECORD_STATUSES = ("PENDING", "COMPLETED", "REFUND_PENDING", "FAILED", "REFUNDED")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=False),
        _status("role", ("PLAYER", "ORGANIZER", "ADMIN"), nullable=False, server_default="PLAYER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        _status("gender", ("MALE", "FEMALE", "OTHERS"), nullable=False),
        sa.Column("contact_number", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("fide_id", sa.String(50), nullable=True),
        sa.Column("is_govt_student", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_participants_id", "participants", ["id"])
    op.create_index("ix_participants_user_id", "participants", ["user_id"])

    op.create_table(
        "event_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("category_name", sa.String(50), nullable=False),
        sa.Column("category_code", sa.String(10), nullable=False, unique=True),
        sa.Column("age_limit", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("entry_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("max_capacity", sa.Integer(), nullable=True),
        sa.Column("current_bookings", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _status("govt_concession_type", ("NONE", "RUPEES", "PERCENTAGE"), nullable=False, server_default="NONE"),
        sa.Column("govt_concession_value", sa.Numeric(10, 2), nullable=False, server_default="0"),
        _status(
            "event_status",
            ("UPCOMING", "IN_PROGRESS", "COMPLETED", "CANCELLED"),
            nullable=False,
            server_default="UPCOMING",
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        # Overbooking guard: the ledger's conditional UPDATE never violates these,
        # so a violation here means a bug elsewhere.
        sa.CheckConstraint("current_bookings >= 0", name="check_current_bookings_non_negative"),
        sa.CheckConstraint(
            "max_capacity IS NULL OR current_bookings <= max_capacity",
            name="check_current_bookings_lte_capacity",
        ),
        sa.CheckConstraint("max_capacity IS NULL OR max_capacity > 0", name="check_max_capacity_positive"),
        sa.CheckConstraint("entry_fee >= 0", name="check_entry_fee_non_negative"),
        sa.CheckConstraint("govt_concession_value >= 0", name="check_concession_non_negative"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_event_status", "events", ["event_status"])
    # Listing query: WHERE event_status = 'UPCOMING' AND start_date >= today ORDER BY start_date
    op.create_index("ix_events_status_date", "events", ["event_status", "start_date"])

    op.create_table(
        "event_category_mapping",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("event_categories.id"), nullable=False),
        sa.UniqueConstraint("event_id", "category_id", name="uq_event_category"),
    )
    op.create_index("ix_event_category_mapping_event_id", "event_category_mapping", ["event_id"])
    op.create_index("ix_event_category_mapping_category_id", "event_category_mapping", ["category_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_reference", sa.String(20), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _status("booking_status", BOOKING_STATUSES, nullable=False, server_default="PENDING"),
        _status("payment_status", BOOKING_PAYMENT_STATUSES, nullable=False, server_default="PENDING"),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("admin_remarks", sa.String(500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("booking_reference", name="uq_bookings_booking_reference"),
        sa.CheckConstraint("participant_count > 0", name="check_booking_participant_count_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="check_booking_amount_non_negative"),
        sa.CheckConstraint(
            "(booking_status = 'PENDING' AND payment_status IN ('PENDING', 'FAILED'))"
            " OR (booking_status = 'CONFIRMED' AND payment_status = 'PAID')"
            " OR (booking_status = 'COMPLETED' AND payment_status = 'PAID')"
            " OR booking_status = 'CANCELLED'",
            name="check_booking_joint_state",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_status", "bookings", ["event_id", "booking_status", "payment_status"])

    op.create_table(
        "booking_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("participants.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.UniqueConstraint("booking_id", "participant_id", name="uq_booking_participant"),
    )
    op.create_index("ix_booking_participants_booking_id", "booking_participants", ["booking_id"])
    op.create_index("ix_booking_participants_participant_id", "booking_participants", ["participant_id"])
    op.create_index("ix_booking_participants_event_id", "booking_participants", ["event_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("transaction_id", sa.String(100), nullable=False),
        sa.Column("gateway_payment_id", sa.String(100), nullable=True),
        _status("payment_gateway", ("ONLINE_GATEWAY", "OFFLINE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        _status("payment_status", PAYMENT_RECORD_STATUSES, nullable=False, server_default="PENDING"),
        sa.Column("gateway_response", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.String(255), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("transaction_id", name="uq_payments_transaction_id"),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    op.create_index("ix_payments_payment_status", "payments", ["payment_status"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("booking_participants")
    op.drop_table("bookings")
    op.drop_table("event_category_mapping")
    op.drop_table("events")
    op.drop_table("event_categories")
    op.drop_table("participants")
    op.drop_table("users")
