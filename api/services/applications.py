"""
Application service functions.

Candidates apply once per job; the owning employer (or an admin) moves an
application between pending, accepted and rejected in any direction.
"""

from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.authorization import Action, Actor, Resource, authorize, filter_visible, is_allowed
from core.exceptions import AlreadyApplied, NotFound, ResumeRequired, ValidationFailed
from core.security import AuditAction, ResourceType, log_audit_event
from core.timeouts import deadline
from database.models.applications import (
    Application,
    ApplicationStatus,
    UNIQUE_APPLICATION_CONSTRAINT,
)
from database.models.candidates import CandidateProfile
from database.models.employers import EmployerProfile
from database.models.jobs import Job
from database.models.users import Profile
from api.services.jobs import job_resource, load_job

logger = logging.getLogger(__name__)

Revalidate = Optional[Callable[[Actor], Awaitable[Actor]]]


def is_duplicate_application(exc: IntegrityError) -> bool:
    """True when ``exc`` is the (candidate_id, job_id) uniqueness violation."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == "23505" or getattr(orig, "pgcode", None) == "23505":
        return UNIQUE_APPLICATION_CONSTRAINT in str(orig) or "applications" in str(orig)
    message = str(orig)
    return UNIQUE_APPLICATION_CONSTRAINT in message or (
        "UNIQUE constraint failed" in message and "applications.candidate_id" in message
    )


def _application_resource(application: Application, job: Job) -> Resource:
    return Resource(employer_id=job.employer_id, candidate_id=application.candidate_id)


def application_to_dict(application: Application) -> Dict[str, Any]:
    return {
        "id": application.id,
        "job_id": application.job_id,
        "candidate_id": application.candidate_id,
        "cover_letter": application.cover_letter,
        "status": application.status.value,
        "applied_at": application.applied_at.isoformat() if application.applied_at else None,
        "updated_at": application.updated_at.isoformat() if application.updated_at else None,
    }


def _parse_status(value: Any) -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationFailed(
            f"status must be one of {', '.join(s.value for s in ApplicationStatus)}",
            field="status",
        ) from None


async def _load_application(db: AsyncSession, application_id: int) -> tuple[Application, Job]:
    result = await db.execute(
        select(Application, Job)
        .join(Job, Application.job_id == Job.id)
        .where(Application.id == application_id)
    )
    row = result.first()
    if row is None:
        raise NotFound("Application not found", details={"application_id": application_id})
    return row[0], row[1]


def _require_candidate(actor: Optional[Actor]) -> Actor:
    return authorize(
        actor,
        Action.APPLICATION_CREATE,
        Resource(candidate_id=actor.candidate_id if actor else None),
    )


# ==================== Lifecycle ===================== #

@deadline("applications.apply")
async def apply_to_job(
    db: AsyncSession,
    actor: Optional[Actor],
    job_id: int,
    cover_letter: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Submit an application.

    Raises:
        NotAuthenticated / NotAuthorized: The actor is not a candidate
        NotFound: The job does not exist or is not open
        ResumeRequired: The candidate has no resume on file
        AlreadyApplied: An application for this job already exists
    """
    actor = _require_candidate(actor)

    job, _ = await load_job(db, job_id)
    if not is_allowed(actor, Action.JOB_READ, job_resource(job)):
        raise NotFound("Job not found", details={"job_id": job_id})

    candidate = await db.get(CandidateProfile, actor.candidate_id)
    if candidate is None or not (candidate.resume_url or "").strip():
        raise ResumeRequired()

    cover_letter = cover_letter.strip() if cover_letter else None
    application = Application(
        job_id=job_id,
        candidate_id=actor.candidate_id,
        cover_letter=cover_letter or None,
        status=ApplicationStatus.PENDING,
    )
    db.add(application)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if is_duplicate_application(e):
            logger.info(
                f"Candidate {actor.candidate_id} already applied to job {job_id}"
            )
            raise AlreadyApplied(details={"job_id": job_id}) from None
        raise
    await db.refresh(application)

    log_audit_event(
        AuditAction.CREATE,
        ResourceType.APPLICATION,
        resource_id=application.id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"job_id": job_id},
    )
    return application_to_dict(application)


@deadline("applications.update_status")
async def update_application_status(
    db: AsyncSession,
    actor: Optional[Actor],
    application_id: int,
    status: ApplicationStatus | str,
) -> Dict[str, Any]:
    """
    Move an application to ``status``. Any state may move to any state;
    the last write wins.
    """
    target = _parse_status(status)
    application, job = await _load_application(db, application_id)
    actor = authorize(
        actor,
        Action.APPLICATION_UPDATE_STATUS,
        Resource(employer_id=job.employer_id),
    )

    previous = application.status
    application.status = target
    await db.commit()
    await db.refresh(application)

    log_audit_event(
        AuditAction.STATUS_CHANGE,
        ResourceType.APPLICATION,
        resource_id=application.id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"from": previous.value, "to": target.value, "job_id": job.id},
    )
    return application_to_dict(application)


@deadline("applications.get", retry_once=True)
async def get_application(
    db: AsyncSession,
    actor: Optional[Actor],
    application_id: int,
) -> Dict[str, Any]:
    application, job = await _load_application(db, application_id)
    authorize(actor, Action.APPLICATION_READ, _application_resource(application, job))
    data = application_to_dict(application)
    data["job"] = {"id": job.id, "title": job.title, "location": job.location}
    return data


# ==================== Listings ===================== #

@deadline("applications.list_for_candidate", retry_once=True)
async def list_candidate_applications(
    db: AsyncSession,
    actor: Optional[Actor],
    revalidate: Revalidate = None,
) -> list[Dict[str, Any]]:
    """The acting candidate's applications, newest first, with job and company."""
    actor = _require_candidate(actor)

    result = await db.execute(
        select(Application, Job, EmployerProfile)
        .join(Job, Application.job_id == Job.id)
        .join(EmployerProfile, Job.employer_id == EmployerProfile.id)
        .where(Application.candidate_id == actor.candidate_id)
        .order_by(Application.applied_at.desc(), Application.id.desc())
    )
    rows = await filter_visible(
        actor,
        Action.APPLICATION_READ,
        result.all(),
        lambda row: _application_resource(row[0], row[1]),
        revalidate,
    )

    items = []
    for application, job, employer in rows:
        data = application_to_dict(application)
        data["job"] = {
            "id": job.id,
            "title": job.title,
            "location": job.location,
            "job_type": job.job_type.value,
            "is_active": job.is_active,
            "company_name": employer.company_name,
        }
        items.append(data)
    return items


@deadline("applications.list_for_job", retry_once=True)
async def list_job_applications(
    db: AsyncSession,
    actor: Optional[Actor],
    job_id: int,
    revalidate: Revalidate = None,
) -> list[Dict[str, Any]]:
    """Applicants for a job with their contact and candidate details (owner or admin)."""
    job, _ = await load_job(db, job_id)
    actor = authorize(actor, Action.APPLICATION_LIST_FOR_JOB, Resource(employer_id=job.employer_id))

    result = await db.execute(
        select(Application, CandidateProfile, Profile)
        .join(CandidateProfile, Application.candidate_id == CandidateProfile.id)
        .join(Profile, CandidateProfile.user_id == Profile.id)
        .where(Application.job_id == job_id)
        .order_by(Application.applied_at.desc(), Application.id.desc())
    )
    rows = await filter_visible(
        actor,
        Action.APPLICATION_READ,
        result.all(),
        lambda row: _application_resource(row[0], job),
        revalidate,
    )

    items = []
    for application, candidate, profile in rows:
        data = application_to_dict(application)
        data["candidate"] = {
            "id": candidate.id,
            "user_id": profile.id,
            "full_name": profile.full_name,
            "email": profile.email,
            "phone": profile.phone,
            "work_authorization": (
                candidate.work_authorization.value if candidate.work_authorization else None
            ),
            "years_of_experience": candidate.years_of_experience,
            "resume_url": candidate.resume_url,
        }
        items.append(data)
    return items


@deadline("applications.has_applied", retry_once=True)
async def has_applied(db: AsyncSession, actor: Optional[Actor], job_id: int) -> Dict[str, Any]:
    """Whether the acting candidate has applied to ``job_id`` (and the current status)."""
    actor = _require_candidate(actor)
    result = await db.execute(
        select(Application.id, Application.status).where(
            Application.candidate_id == actor.candidate_id,
            Application.job_id == job_id,
        )
    )
    row = result.first()
    return {
        "job_id": job_id,
        "has_applied": row is not None,
        "application_id": row[0] if row else None,
        "status": row[1].value if row else None,
    }
