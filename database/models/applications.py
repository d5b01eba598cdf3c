"""
Application Models

One application per (candidate, job). Uniqueness is enforced by the
database constraint so concurrent submissions cannot create duplicates.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    ForeignKey,
    DateTime,
    Text,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, BigIntPK, enum_values
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.candidates import CandidateProfile
    from database.models.jobs import Job


# ==================== Application Enums ===================== #
class ApplicationStatus(str, PyEnum):
    """Review status. Every status is reachable from every other."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Columns fixed at creation
IMMUTABLE_APPLICATION_COLUMNS = ("job_id", "candidate_id", "applied_at")

UNIQUE_APPLICATION_CONSTRAINT = "uq_application_candidate_job"


# ==================== Application Model ===================== #
class Application(Base):
    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    candidate_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("candidate_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    cover_letter: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(
            ApplicationStatus,
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, onupdate=now, nullable=False
    )

    job: Mapped["Job"] = relationship(back_populates="applications")
    candidate: Mapped["CandidateProfile"] = relationship(back_populates="applications")

    __table_args__ = (
        UniqueConstraint("candidate_id", "job_id", name=UNIQUE_APPLICATION_CONSTRAINT),
        Index("idx_application_candidate", "candidate_id"),
        Index("idx_application_job", "job_id"),
    )
