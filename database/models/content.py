"""
Site content: editable marketing copy keyed by section.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, ForeignKey, DateTime, JSON
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime


ABOUT_PAGE_SECTION = "about_page"

ABOUT_PAGE_KEYS = (
    "hero_title",
    "hero_description",
    "mission_title",
    "mission_body",
    "contact_email",
    "contact_phone",
    "contact_address",
    "social_linkedin",
    "social_twitter",
    "social_facebook",
    "social_instagram",
)


class SiteContent(Base):
    __tablename__ = "site_content"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    section_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    content: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    last_updated_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="SET NULL")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, onupdate=now, nullable=False
    )
