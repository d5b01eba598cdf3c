"""
Jobs Module

Job postings owned by an employer profile. ``is_active`` controls public
visibility; the owner and admins see postings in every state.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    DateTime,
    String,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
    CheckConstraint,
)
from database.engine import Base, BigIntPK, enum_values
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.employers import EmployerProfile


# ==================== Job Enums ===================== #
class JobType(str, PyEnum):
    """Job employment type."""

    FULL_TIME = "Full-time"
    PART_TIME = "Part-time"
    CONTRACT = "Contract"
    INTERNSHIP = "Internship"


# ==================== Job Model ===================== #
class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    employer_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("employer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    job_type: Mapped[JobType] = mapped_column(
        SQLEnum(JobType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=JobType.FULL_TIME,
    )

    # Compensation (either bound may be open)
    salary_min: Mapped[int | None] = mapped_column(Integer)
    salary_max: Mapped[int | None] = mapped_column(Integer)

    # Requirements
    skills_required: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    experience_required: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    work_authorization: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, onupdate=now, nullable=False
    )

    employer: Mapped["EmployerProfile"] = relationship(back_populates="jobs")
    applications: Mapped[list["Application"]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "salary_min IS NULL OR salary_max IS NULL OR salary_min <= salary_max",
            name="ck_job_salary_range",
        ),
        CheckConstraint("experience_required >= 0", name="ck_job_experience_non_negative"),
        Index("idx_job_active_created", "is_active", "created_at"),
        Index("idx_job_employer_created", "employer_id", "created_at"),
    )
