"""Site content (About page copy) service functions."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.authorization import Action, Actor, authorize
from core.exceptions import ValidationFailed
from core.security import AuditAction, ResourceType, log_audit_event
from core.timeouts import deadline
from core.utils.validators import validate_email, validate_url
from database.models.content import ABOUT_PAGE_KEYS, ABOUT_PAGE_SECTION, SiteContent

logger = logging.getLogger(__name__)

SOCIAL_KEYS = ("social_linkedin", "social_twitter", "social_facebook", "social_instagram")


def _empty_about() -> Dict[str, Optional[str]]:
    return {key: None for key in ABOUT_PAGE_KEYS}


def validate_about_content(content: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Check keys and values of About page copy.

    Blank strings are stored as None (social links absent means not shown).
    """
    unknown = set(content) - set(ABOUT_PAGE_KEYS)
    if unknown:
        raise ValidationFailed(
            f"Unknown content keys: {', '.join(sorted(unknown))}",
            details={"keys": sorted(unknown)},
        )

    cleaned: Dict[str, Optional[str]] = {}
    for key, value in content.items():
        if value is not None and not isinstance(value, str):
            raise ValidationFailed(f"{key} must be a string", field=key)
        value = value.strip() if value else None
        cleaned[key] = value or None

    for key in SOCIAL_KEYS:
        if cleaned.get(key):
            ok, error = validate_url(cleaned[key])
            if not ok:
                raise ValidationFailed(f"{key}: {error}", field=key)

    if cleaned.get("contact_email"):
        ok, result = validate_email(cleaned["contact_email"])
        if not ok:
            raise ValidationFailed(f"contact_email: {result}", field="contact_email")
        cleaned["contact_email"] = result

    return cleaned


def _content_to_dict(row: Optional[SiteContent]) -> Dict[str, Any]:
    content = _empty_about()
    if row is not None:
        content.update({k: v for k, v in (row.content or {}).items() if k in ABOUT_PAGE_KEYS})
    return {
        "section_key": ABOUT_PAGE_SECTION,
        "content": content,
        "updated_at": row.updated_at.isoformat() if row is not None and row.updated_at else None,
        "last_updated_by": row.last_updated_by if row is not None else None,
    }


@deadline("content.get", retry_once=True)
async def get_about_content(db: AsyncSession) -> Dict[str, Any]:
    """About page copy; every key present, unset keys None."""
    row = await db.scalar(select(SiteContent).where(SiteContent.section_key == ABOUT_PAGE_SECTION))
    return _content_to_dict(row)


@deadline("content.update")
async def update_about_content(
    db: AsyncSession,
    actor: Optional[Actor],
    content: Dict[str, Any],
) -> Dict[str, Any]:
    """Upsert About page copy (admin). Keys not supplied keep their values."""
    actor = authorize(actor, Action.CONTENT_UPDATE)
    cleaned = validate_about_content(content)

    row = await db.scalar(select(SiteContent).where(SiteContent.section_key == ABOUT_PAGE_SECTION))
    if row is None:
        row = SiteContent(
            section_key=ABOUT_PAGE_SECTION,
            content=cleaned,
            last_updated_by=actor.principal_id,
        )
        db.add(row)
        try:
            await db.commit()
        except IntegrityError:
            # Another admin created the row first; apply on top of theirs
            await db.rollback()
            row = await db.scalar(
                select(SiteContent).where(SiteContent.section_key == ABOUT_PAGE_SECTION)
            )
            row.content = {**(row.content or {}), **cleaned}
            row.last_updated_by = actor.principal_id
            await db.commit()
    else:
        # Reassign so the JSON column is flagged dirty
        row.content = {**(row.content or {}), **cleaned}
        row.last_updated_by = actor.principal_id
        await db.commit()

    await db.refresh(row)
    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.SITE_CONTENT,
        resource_id=ABOUT_PAGE_SECTION,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"keys": sorted(cleaned)},
    )
    return _content_to_dict(row)
