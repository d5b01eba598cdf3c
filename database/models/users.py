"""
User Models

Principals (credentials) and Profiles (role-bearing identity). A Principal
exists from sign-up; its Profile is provisioned once the email code is
verified. Until then the principal has no role.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    JSON,
    Enum as SQLEnum,
)
from database.engine import Base, enum_values
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from database.models.candidates import CandidateProfile
    from database.models.employers import EmployerProfile


# ==================== User Enums ===================== #
class UserRole(str, PyEnum):
    """Role recorded on a Profile."""

    CANDIDATE = "candidate"
    EMPLOYER = "employer"
    ADMIN = "admin"


# ==================== Principal Model ===================== #
class Principal(Base):
    """Authenticated identity: email plus credential."""

    __tablename__ = "principals"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Sign-up verification (hashed code, cleared once verified)
    verification_code_hash: Mapped[str | None] = mapped_column(String(64))
    verification_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    # Pending role details supplied at sign-up, consumed by provisioning
    signup_data: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, nullable=False
    )

    profile: Mapped["Profile | None"] = relationship(
        back_populates="principal",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )


# ==================== Profile Model ===================== #
class Profile(Base):
    """Role-bearing identity keyed by the principal id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("principals.id", ondelete="CASCADE"),
        primary_key=True,
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50))
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, onupdate=now, nullable=False
    )

    principal: Mapped["Principal"] = relationship(back_populates="profile")
    candidate_profile: Mapped["CandidateProfile | None"] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    employer_profile: Mapped["EmployerProfile | None"] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
