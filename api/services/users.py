"""
Admin user moderation.

Overview counts, user search, profile/role edits and full-cascade user
deletion. Every function requires the admin role.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.authorization import Action, Actor, authorize
from core.exceptions import NotAuthorized, NotFound, ValidationFailed
from core.identity import PrincipalChange, PrincipalChangeKind, PrincipalChangeNotifier
from core.security import AuditAction, ResourceType, log_audit_event
from core.sessions import SessionStore
from core.storage.base import BlobStorage
from core.timeouts import deadline, with_deadline
from database.models.applications import Application, ApplicationStatus
from database.models.candidates import CandidateProfile
from database.models.employers import EmployerProfile
from database.models.jobs import Job
from database.models.users import Principal, Profile, UserRole
from api.services.profiles import (
    clean_employer_changes,
    clean_profile_changes,
    load_profile_bundle,
    profile_to_dict,
    remove_resume_blob,
)

logger = logging.getLogger(__name__)

ADMIN_EDITABLE_FIELDS = ("full_name", "phone", "role", "company_name", "location")


@deadline("users.overview", retry_once=True)
async def get_overview(db: AsyncSession, actor: Optional[Actor]) -> Dict[str, Any]:
    """Counts of users per role, jobs and applications per status."""
    authorize(actor, Action.USER_MANAGE)

    role_rows = await db.execute(select(Profile.role, func.count()).group_by(Profile.role))
    users_by_role = {role.value: 0 for role in UserRole}
    users_by_role.update({role.value: count for role, count in role_rows.all()})

    total_jobs = await db.scalar(select(func.count()).select_from(Job)) or 0
    active_jobs = await db.scalar(
        select(func.count()).select_from(Job).where(Job.is_active.is_(True))
    ) or 0

    status_rows = await db.execute(
        select(Application.status, func.count()).group_by(Application.status)
    )
    applications_by_status = {status.value: 0 for status in ApplicationStatus}
    applications_by_status.update({status.value: count for status, count in status_rows.all()})

    return {
        "users": {"total": sum(users_by_role.values()), "by_role": users_by_role},
        "jobs": {"total": total_jobs, "active": active_jobs, "inactive": total_jobs - active_jobs},
        "applications": {
            "total": sum(applications_by_status.values()),
            "by_status": applications_by_status,
        },
    }


@deadline("users.list", retry_once=True)
async def list_users(
    db: AsyncSession,
    actor: Optional[Actor],
    search: Optional[str] = None,
    role: Optional[UserRole | str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    """Profiles, newest first, filtered by name/email substring and role."""
    authorize(actor, Action.USER_MANAGE)

    query = (
        select(Profile, CandidateProfile, EmployerProfile)
        .outerjoin(CandidateProfile, CandidateProfile.user_id == Profile.id)
        .outerjoin(EmployerProfile, EmployerProfile.user_id == Profile.id)
    )
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Profile.full_name.ilike(pattern), Profile.email.ilike(pattern)))
    if role:
        try:
            query = query.where(Profile.role == UserRole(role))
        except ValueError:
            raise ValidationFailed(f"Unknown role '{role}'", field="role") from None

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
    result = await db.execute(
        query.order_by(Profile.created_at.desc(), Profile.id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    items = [profile_to_dict(p, c, e) for p, c, e in result.all()]
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


@deadline("users.update")
async def update_user(
    db: AsyncSession,
    actor: Optional[Actor],
    user_id: str,
    changes: Dict[str, Any],
    notifier: Optional[PrincipalChangeNotifier] = None,
) -> Dict[str, Any]:
    """
    Edit a user's name, phone and role.

    Switching a user to ``candidate`` creates an empty candidate profile if
    none exists; switching to ``employer`` requires ``company_name`` and
    ``location`` unless an employer profile already exists.
    """
    actor = authorize(actor, Action.USER_MANAGE)

    unknown = set(changes) - set(ADMIN_EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(
            f"Unknown fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    profile, candidate, employer = await load_profile_bundle(db, user_id)
    cleaned = clean_profile_changes({k: v for k, v in changes.items() if k in ("full_name", "phone")})
    for name, value in cleaned.items():
        setattr(profile, name, value)

    previous_role = profile.role
    new_role = previous_role
    if changes.get("role") is not None:
        try:
            new_role = UserRole(changes["role"])
        except ValueError:
            raise ValidationFailed(f"Unknown role '{changes['role']}'", field="role") from None

    if new_role != previous_role:
        if profile.id == actor.principal_id:
            raise NotAuthorized("Admins cannot change their own role")
        if new_role == UserRole.CANDIDATE and candidate is None:
            candidate = CandidateProfile(user_id=profile.id)
            db.add(candidate)
        elif new_role == UserRole.EMPLOYER and employer is None:
            company = clean_employer_changes(
                {
                    "company_name": changes.get("company_name"),
                    "location": changes.get("location"),
                }
            )
            employer = EmployerProfile(user_id=profile.id, **company)
            db.add(employer)
        profile.role = new_role

    await db.commit()
    await db.refresh(profile)

    if new_role != previous_role and notifier is not None:
        notifier.publish(PrincipalChange(profile.id, PrincipalChangeKind.PROFILE_CHANGED))

    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.PROFILE,
        resource_id=user_id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={
            "fields": sorted(set(cleaned) | ({"role"} if new_role != previous_role else set())),
            "role_from": previous_role.value,
            "role_to": new_role.value,
        },
    )
    return profile_to_dict(profile, candidate, employer)


async def delete_user(
    db: AsyncSession,
    actor: Optional[Actor],
    user_id: str,
    sessions: SessionStore,
    notifier: PrincipalChangeNotifier,
    storage: Optional[BlobStorage] = None,
) -> Dict[str, Any]:
    """
    Delete a user and everything they own in one transaction.

    Principal, profile, role profile, the employer's jobs, and every
    application by the candidate or to those jobs go together. Sessions are
    cleared and a ``deleted`` change is published afterwards; a stored
    resume file is removed last (failures logged).

    Raises:
        NotFound: No such principal
        NotAuthorized: The target is an admin
    """
    actor = authorize(actor, Action.USER_MANAGE)

    async def remove() -> Dict[str, Any]:
        principal = await db.get(Principal, user_id)
        if principal is None:
            raise NotFound("User not found", details={"user_id": user_id})

        profile = await db.get(Profile, user_id)
        if profile is not None and profile.role == UserRole.ADMIN:
            raise NotAuthorized("Admin accounts cannot be deleted")

        candidate = await db.scalar(select(CandidateProfile).where(CandidateProfile.user_id == user_id))
        employer = await db.scalar(select(EmployerProfile).where(EmployerProfile.user_id == user_id))

        counts = {"jobs": 0, "applications": 0}
        if candidate is not None:
            result = await db.execute(
                delete(Application).where(Application.candidate_id == candidate.id)
            )
            counts["applications"] += result.rowcount or 0
        if employer is not None:
            job_ids = select(Job.id).where(Job.employer_id == employer.id)
            result = await db.execute(delete(Application).where(Application.job_id.in_(job_ids)))
            counts["applications"] += result.rowcount or 0
            result = await db.execute(delete(Job).where(Job.employer_id == employer.id))
            counts["jobs"] += result.rowcount or 0

        resume_url = candidate.resume_url if candidate is not None else None
        await db.delete(principal)
        await db.commit()
        return {"user_id": user_id, "resume_url": resume_url, **counts}

    outcome = await with_deadline(remove, operation="users.delete")

    cleared = await with_deadline(
        lambda: sessions.clear_principal(user_id), operation="sessions.clear_principal"
    )
    notifier.publish(PrincipalChange(user_id, PrincipalChangeKind.DELETED))

    resume_url = outcome.pop("resume_url")
    if resume_url and storage is not None:
        await remove_resume_blob(storage, resume_url)

    log_audit_event(
        AuditAction.DELETE,
        ResourceType.PRINCIPAL,
        resource_id=user_id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={**outcome, "sessions_cleared": cleared},
    )
    logger.info(
        f"User {user_id} deleted with {outcome['jobs']} job(s) and "
        f"{outcome['applications']} application(s)"
    )
    return outcome


async def get_user(db: AsyncSession, actor: Optional[Actor], user_id: str) -> Dict[str, Any]:
    authorize(actor, Action.USER_MANAGE)
    return profile_to_dict(*await load_profile_bundle(db, user_id))
