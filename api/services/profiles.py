"""
Profile service functions.

Users edit their own profile and role details; admins may edit anyone's
through the same functions (the policy table decides). Resume upload
stores the file in blob storage and records its public URL.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.authorization import Action, Actor, Resource, authorize
from core.config import settings
from core.exceptions import NotFound, ValidationFailed
from core.security import AuditAction, ResourceType, log_audit_event
from core.storage.base import BlobStorage
from core.timeouts import deadline, with_deadline
from core.utils.datetime import now, to_unix_ms
from core.utils.validators import resume_extension, validate_phone, validate_url, RESUME_EXTENSIONS
from database.models.candidates import CandidateProfile, WorkAuthorization
from database.models.employers import EmployerProfile
from database.models.users import Profile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "phone")
CANDIDATE_FIELDS = ("work_authorization", "years_of_experience")
EMPLOYER_FIELDS = ("company_name", "location", "company_website", "description")


def candidate_to_dict(candidate: CandidateProfile) -> Dict[str, Any]:
    return {
        "id": candidate.id,
        "work_authorization": (
            candidate.work_authorization.value if candidate.work_authorization else None
        ),
        "years_of_experience": candidate.years_of_experience,
        "resume_url": candidate.resume_url,
        "updated_at": candidate.updated_at.isoformat() if candidate.updated_at else None,
    }


def employer_to_dict(employer: EmployerProfile) -> Dict[str, Any]:
    return {
        "id": employer.id,
        "company_name": employer.company_name,
        "location": employer.location,
        "company_website": employer.company_website,
        "description": employer.description,
        "updated_at": employer.updated_at.isoformat() if employer.updated_at else None,
    }


def profile_to_dict(
    profile: Profile,
    candidate: Optional[CandidateProfile] = None,
    employer: Optional[EmployerProfile] = None,
) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "email": profile.email,
        "phone": profile.phone,
        "role": profile.role.value,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
        "candidate_profile": candidate_to_dict(candidate) if candidate else None,
        "employer_profile": employer_to_dict(employer) if employer else None,
    }


async def load_profile_bundle(
    db: AsyncSession,
    user_id: str,
) -> tuple[Profile, Optional[CandidateProfile], Optional[EmployerProfile]]:
    """Profile plus whichever role profiles exist. Raises NotFound."""
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFound("Profile not found", details={"user_id": user_id})
    candidate = await db.scalar(select(CandidateProfile).where(CandidateProfile.user_id == user_id))
    employer = await db.scalar(select(EmployerProfile).where(EmployerProfile.user_id == user_id))
    return profile, candidate, employer


def _reject_unknown(changes: Dict[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValidationFailed(
            f"Unknown fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )


def clean_profile_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    if "full_name" in changes:
        name = (changes["full_name"] or "").strip()
        if not name:
            raise ValidationFailed("full_name is required", field="full_name")
        cleaned["full_name"] = name
    if "phone" in changes:
        phone = (changes["phone"] or "").strip() or None
        if phone:
            ok, error = validate_phone(phone)
            if not ok:
                raise ValidationFailed(error, field="phone")
        cleaned["phone"] = phone
    return cleaned


def clean_candidate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    if "work_authorization" in changes:
        value = changes["work_authorization"]
        if value in (None, ""):
            cleaned["work_authorization"] = None
        else:
            try:
                cleaned["work_authorization"] = WorkAuthorization(value)
            except ValueError:
                raise ValidationFailed(
                    f"Unknown work authorization '{value}'", field="work_authorization"
                ) from None
    if "years_of_experience" in changes:
        years = changes["years_of_experience"]
        if years is not None and years < 0:
            raise ValidationFailed(
                "years_of_experience cannot be negative", field="years_of_experience"
            )
        cleaned["years_of_experience"] = years
    return cleaned


def clean_employer_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for name in ("company_name", "location"):
        if name in changes:
            value = (changes[name] or "").strip()
            if not value:
                raise ValidationFailed(f"{name} is required", field=name)
            cleaned[name] = value
    if "company_website" in changes:
        website = (changes["company_website"] or "").strip() or None
        if website:
            ok, error = validate_url(website)
            if not ok:
                raise ValidationFailed(error, field="company_website")
        cleaned["company_website"] = website
    if "description" in changes:
        cleaned["description"] = (changes["description"] or "").strip() or None
    return cleaned


# ==================== Reads ===================== #

@deadline("profiles.get", retry_once=True)
async def get_profile(db: AsyncSession, actor: Optional[Actor], user_id: str) -> Dict[str, Any]:
    authorize(actor, Action.PROFILE_READ, Resource(principal_id=user_id))
    return profile_to_dict(*await load_profile_bundle(db, user_id))


# ==================== Writes ===================== #

@deadline("profiles.update")
async def update_profile(
    db: AsyncSession,
    actor: Optional[Actor],
    user_id: str,
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """Edit name and phone."""
    actor = authorize(actor, Action.PROFILE_UPDATE, Resource(principal_id=user_id))
    _reject_unknown(changes, PROFILE_FIELDS)
    cleaned = clean_profile_changes(changes)

    profile, candidate, employer = await load_profile_bundle(db, user_id)
    for name, value in cleaned.items():
        setattr(profile, name, value)
    await db.commit()
    await db.refresh(profile)

    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.PROFILE,
        resource_id=user_id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"fields": sorted(cleaned)},
    )
    return profile_to_dict(profile, candidate, employer)


@deadline("profiles.update_candidate")
async def update_candidate_details(
    db: AsyncSession,
    actor: Optional[Actor],
    user_id: str,
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """Edit work authorization and years of experience."""
    actor = authorize(actor, Action.PROFILE_UPDATE, Resource(principal_id=user_id))
    _reject_unknown(changes, CANDIDATE_FIELDS)
    cleaned = clean_candidate_changes(changes)

    candidate = await db.scalar(select(CandidateProfile).where(CandidateProfile.user_id == user_id))
    if candidate is None:
        raise NotFound("Candidate profile not found", details={"user_id": user_id})
    for name, value in cleaned.items():
        setattr(candidate, name, value)
    await db.commit()
    await db.refresh(candidate)

    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.PROFILE,
        resource_id=user_id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"candidate_fields": sorted(cleaned)},
    )
    return candidate_to_dict(candidate)


@deadline("profiles.update_employer")
async def update_employer_details(
    db: AsyncSession,
    actor: Optional[Actor],
    user_id: str,
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """Edit company name, location, website and description."""
    actor = authorize(actor, Action.PROFILE_UPDATE, Resource(principal_id=user_id))
    _reject_unknown(changes, EMPLOYER_FIELDS)
    cleaned = clean_employer_changes(changes)

    employer = await db.scalar(select(EmployerProfile).where(EmployerProfile.user_id == user_id))
    if employer is None:
        raise NotFound("Employer profile not found", details={"user_id": user_id})
    for name, value in cleaned.items():
        setattr(employer, name, value)
    await db.commit()
    await db.refresh(employer)

    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.PROFILE,
        resource_id=user_id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"employer_fields": sorted(cleaned)},
    )
    return employer_to_dict(employer)


def resume_path(principal_id: str, extension: str) -> str:
    """``{principal_id}/resume_{unix_ms}.{ext}``"""
    return f"{principal_id}/resume_{to_unix_ms(now())}.{extension}"


async def upload_resume(
    db: AsyncSession,
    actor: Optional[Actor],
    storage: BlobStorage,
    filename: str,
    data: bytes,
    content_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Store a resume for the acting candidate and point ``resume_url`` at it.

    The previous resume file, if this store issued it, is removed afterwards.
    """
    actor = authorize(
        actor,
        Action.RESUME_UPLOAD,
        Resource(candidate_id=actor.candidate_id if actor else None),
    )

    extension = resume_extension(filename)
    if extension is None:
        raise ValidationFailed(
            f"Resume must be one of: {', '.join(sorted(RESUME_EXTENSIONS))}",
            field="file",
        )
    if not data:
        raise ValidationFailed("Resume file is empty", field="file")
    if len(data) > settings.resume_max_bytes:
        raise ValidationFailed(
            f"Resume exceeds the {settings.resume_max_bytes // (1024 * 1024)} MB limit",
            field="file",
        )

    candidate = await with_deadline(
        lambda: db.get(CandidateProfile, actor.candidate_id),
        operation="profiles.load_candidate",
        retry_once=True,
    )
    if candidate is None:
        raise NotFound("Candidate profile not found")

    path = resume_path(actor.principal_id, extension)
    await with_deadline(
        lambda: storage.upload(path, data, content_type),
        operation="blob.upload",
    )

    previous_url = candidate.resume_url
    new_url = storage.public_url(path)
    candidate.resume_url = new_url
    try:
        await with_deadline(db.commit, operation="profiles.set_resume")
    except Exception:
        logger.warning(f"Resume update for {actor.principal_id} not saved, removing {path}")
        await db.rollback()
        await remove_resume_blob(storage, new_url)
        raise
    await db.refresh(candidate)

    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.RESUME,
        resource_id=path,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"size": len(data)},
    )

    if previous_url:
        await remove_resume_blob(storage, previous_url)

    return candidate_to_dict(candidate)


async def remove_resume_blob(storage: BlobStorage, url: str) -> bool:
    """Delete a stored resume by URL. Failures are logged, not raised."""
    path = storage.path_from_url(url)
    if path is None:
        return False
    try:
        return await with_deadline(lambda: storage.delete(path), operation="blob.delete")
    except Exception:
        logger.exception(f"Failed to remove resume blob {path}")
        return False
