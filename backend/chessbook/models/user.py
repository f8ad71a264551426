"""
User and participant models.

Users and participants are owned by the profile CRUD service; the booking
core only reads them (ownership checks, concession eligibility, category age
checks and notification contact details).
"""

from sqlalchemy import Boolean, Column, Date, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from chessbook.db.base import Base, TimestampMixin
from chessbook.models.enums import Gender, UserRole


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(
        Enum(UserRole, native_enum=False, create_constraint=True, length=20, name="user_role"),
        nullable=False,
        default=UserRole.PLAYER,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    participants = relationship("Participant", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Participant(Base, TimestampMixin):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(
        Enum(Gender, native_enum=False, create_constraint=True, length=10, name="participant_gender"),
        nullable=False,
    )
    contact_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    fide_id = Column(String(50), nullable=True)
    is_govt_student = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="participants")

    def __repr__(self) -> str:
        return f"<Participant(id={self.id}, user={self.user_id}, name={self.full_name})>"
