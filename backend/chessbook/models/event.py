"""
Event model with slot inventory tracking.

Key design decisions:
- `current_bookings` is the reserved-slot counter. Only the capacity ledger
  (services/capacity_ledger.py) writes it, with a single conditional UPDATE.
- `max_capacity` NULL means unlimited.
- CHECK constraints are the last line of defence against overselling.
- `version` is bumped on every counter change so readers can detect staleness.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from chessbook.db.base import Base, TimestampMixin
from chessbook.models.enums import ConcessionType, EventStatus

event_categories = Table(
    "event_category_mapping",
    Base.metadata,
    Column("id", Integer, primary_key=True),
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("category_id", Integer, ForeignKey("event_categories.id"), nullable=False, index=True),
    UniqueConstraint("event_id", "category_id", name="uq_event_category"),
)


class Category(Base):
    __tablename__ = "event_categories"

    id = Column(Integer, primary_key=True)
    category_name = Column(String(50), nullable=False)
    category_code = Column(String(10), nullable=False, unique=True)
    age_limit = Column(Integer, nullable=True)  # NULL or 0: open to all ages
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Category(code={self.category_code}, age_limit={self.age_limit})>"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    entry_fee = Column(Numeric(10, 2), nullable=False, default=0)
    max_capacity = Column(Integer, nullable=True)
    current_bookings = Column(Integer, nullable=False, default=0)
    is_online = Column(Boolean, nullable=False, default=False)
    govt_concession_type = Column(
        Enum(ConcessionType, native_enum=False, create_constraint=True, length=20, name="concession_type"),
        nullable=False,
        default=ConcessionType.NONE,
    )
    govt_concession_value = Column(Numeric(10, 2), nullable=False, default=0)
    event_status = Column(
        Enum(EventStatus, native_enum=False, create_constraint=True, length=20, name="event_status"),
        nullable=False,
        default=EventStatus.UPCOMING,
        index=True,
    )

    # Bumped on every ledger mutation
    version = Column(Integer, nullable=False, default=1)

    categories = relationship("Category", secondary=event_categories, lazy="selectin")

    __table_args__ = (
        CheckConstraint("current_bookings >= 0", name="check_current_bookings_non_negative"),
        CheckConstraint(
            "max_capacity IS NULL OR current_bookings <= max_capacity",
            name="check_current_bookings_lte_capacity",
        ),
        CheckConstraint("max_capacity IS NULL OR max_capacity > 0", name="check_max_capacity_positive"),
        CheckConstraint("entry_fee >= 0", name="check_entry_fee_non_negative"),
        CheckConstraint("govt_concession_value >= 0", name="check_concession_non_negative"),
        Index("ix_events_status_date", "event_status", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, booked={self.current_bookings}/{self.max_capacity})>"
