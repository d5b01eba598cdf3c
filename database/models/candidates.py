"""
Candidate Models

Candidate-specific profile: work authorization, experience and the resume
that must be on file before applying to any job.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    Integer,
    DateTime,
    Text,
    Enum as SQLEnum,
    CheckConstraint,
)
from database.engine import Base, BigIntPK, enum_values
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import Profile
    from database.models.applications import Application


# ==================== Candidate Enums ===================== #
class WorkAuthorization(str, PyEnum):
    """US work authorization categories."""

    H1B = "H1B"
    CPT_EAD = "CPT-EAD"
    OPT_EAD = "OPT-EAD"
    GC = "GC"
    GC_EAD = "GC-EAD"
    USC = "USC"
    TN = "TN"


# ==================== Candidate Profile Model ===================== #
class CandidateProfile(Base):
    __tablename__ = "candidate_profiles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    work_authorization: Mapped[WorkAuthorization | None] = mapped_column(
        SQLEnum(
            WorkAuthorization,
            native_enum=False,
            length=20,
            values_callable=enum_values,
        )
    )
    years_of_experience: Mapped[int | None] = mapped_column(Integer)
    resume_url: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, onupdate=now, nullable=False
    )

    profile: Mapped["Profile"] = relationship(back_populates="candidate_profile")
    applications: Mapped[list["Application"]] = relationship(
        back_populates="candidate",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "years_of_experience IS NULL OR years_of_experience >= 0",
            name="ck_candidate_experience_non_negative",
        ),
    )
