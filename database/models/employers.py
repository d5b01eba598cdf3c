"""
Employer Models

Company details attached to an employer's profile. Jobs belong to the
employer profile, not to the principal directly.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, DateTime, Text
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import Profile
    from database.models.jobs import Job


class EmployerProfile(Base):
    __tablename__ = "employer_profiles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    company_website: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, onupdate=now, nullable=False
    )

    profile: Mapped["Profile"] = relationship(back_populates="employer_profile")
    jobs: Mapped[list["Job"]] = relationship(
        back_populates="employer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
