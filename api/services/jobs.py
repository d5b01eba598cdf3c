"""
Job service functions.

Lifecycle of a posting: created active, toggled between active and
inactive by its owner or an admin, and deleted together with all of its
applications. Only active postings appear in the public listing.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, Optional
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.authorization import Action, Actor, Resource, authorize, filter_visible, is_allowed
from core.exceptions import NotFound, ValidationFailed
from core.security import AuditAction, ResourceType, log_audit_event
from core.timeouts import deadline
from database.models.applications import Application
from database.models.candidates import WorkAuthorization
from database.models.employers import EmployerProfile
from database.models.jobs import Job, JobType

logger = logging.getLogger(__name__)

Revalidate = Optional[Callable[[Actor], Awaitable[Actor]]]

REQUIRED_JOB_FIELDS = ("title", "location", "description", "job_type")
EDITABLE_JOB_FIELDS = (
    "title",
    "location",
    "description",
    "job_type",
    "salary_min",
    "salary_max",
    "skills_required",
    "experience_required",
    "work_authorization",
)


# ==================== Normalization ===================== #

def normalize_skills(skills: Iterable[str] | str | None) -> list[str]:
    """
    Trim, drop blanks and de-duplicate skills, preserving first-seen order.

    Accepts a list or a comma-separated string.
    """
    if skills is None:
        return []
    if isinstance(skills, str):
        skills = skills.split(",")

    seen: set[str] = set()
    result = []
    for skill in skills:
        cleaned = skill.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return result


def normalize_work_authorization(values: Iterable[str] | None) -> list[str]:
    """Validate against the known categories, de-duplicated in order."""
    if values is None:
        return []
    allowed = {member.value for member in WorkAuthorization}
    result = []
    for value in values:
        value = value.strip()
        if value not in allowed:
            raise ValidationFailed(
                f"Unknown work authorization '{value}'",
                field="work_authorization",
            )
        if value not in result:
            result.append(value)
    return result


def _parse_job_type(value: Any) -> JobType:
    if isinstance(value, JobType):
        return value
    try:
        return JobType(value)
    except ValueError:
        raise ValidationFailed(
            f"job_type must be one of {', '.join(t.value for t in JobType)}",
            field="job_type",
        ) from None


def validate_job_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize a complete set of job fields.

    Raises:
        ValidationFailed: A required field is blank, the salary range is
            inverted, or experience is negative
    """
    cleaned = dict(fields)
    for name in REQUIRED_JOB_FIELDS:
        value = cleaned.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationFailed(f"{name} is required", field=name)
        if isinstance(value, str):
            cleaned[name] = value.strip()

    cleaned["job_type"] = _parse_job_type(cleaned["job_type"])
    cleaned["skills_required"] = normalize_skills(cleaned.get("skills_required"))
    cleaned["work_authorization"] = normalize_work_authorization(cleaned.get("work_authorization"))

    experience = cleaned.get("experience_required")
    if experience is None:
        experience = 0
    if experience < 0:
        raise ValidationFailed("experience_required cannot be negative", field="experience_required")
    cleaned["experience_required"] = experience

    salary_min = cleaned.get("salary_min")
    salary_max = cleaned.get("salary_max")
    if salary_min is not None and salary_min < 0:
        raise ValidationFailed("salary_min cannot be negative", field="salary_min")
    if salary_max is not None and salary_max < 0:
        raise ValidationFailed("salary_max cannot be negative", field="salary_max")
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise ValidationFailed(
            "salary_min cannot exceed salary_max",
            details={"field": "salary_min", "salary_min": salary_min, "salary_max": salary_max},
        )
    return cleaned


# ==================== Helpers ===================== #

def job_resource(job: Job) -> Resource:
    return Resource(employer_id=job.employer_id, is_active=job.is_active)


def job_to_dict(
    job: Job,
    employer: Optional[EmployerProfile] = None,
    application_count: Optional[int] = None,
) -> Dict[str, Any]:
    data = {
        "id": job.id,
        "employer_id": job.employer_id,
        "title": job.title,
        "description": job.description,
        "location": job.location,
        "job_type": job.job_type.value,
        "salary_min": job.salary_min,
        "salary_max": job.salary_max,
        "skills_required": list(job.skills_required or []),
        "experience_required": job.experience_required,
        "work_authorization": list(job.work_authorization or []),
        "is_active": job.is_active,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
    }
    if employer is not None:
        data["company"] = {
            "company_name": employer.company_name,
            "location": employer.location,
            "company_website": employer.company_website,
            "description": employer.description,
        }
    if application_count is not None:
        data["application_count"] = application_count
    return data


async def load_job(db: AsyncSession, job_id: int) -> tuple[Job, EmployerProfile]:
    """Fetch a job with its employer. Raises NotFound."""
    result = await db.execute(
        select(Job, EmployerProfile)
        .join(EmployerProfile, Job.employer_id == EmployerProfile.id)
        .where(Job.id == job_id)
    )
    row = result.first()
    if row is None:
        raise NotFound("Job not found", details={"job_id": job_id})
    return row[0], row[1]


async def _application_counts(db: AsyncSession, job_ids: list[int]) -> dict[int, int]:
    if not job_ids:
        return {}
    result = await db.execute(
        select(Application.job_id, func.count(Application.id))
        .where(Application.job_id.in_(job_ids))
        .group_by(Application.job_id)
    )
    return {job_id: count for job_id, count in result.all()}


def _paginate(items: list, total: int, page: int, page_size: int) -> Dict[str, Any]:
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


# ==================== Lifecycle ===================== #

@deadline("jobs.create")
async def create_job(db: AsyncSession, actor: Optional[Actor], data: Dict[str, Any]) -> Dict[str, Any]:
    """Create an active job owned by the acting employer."""
    actor = authorize(
        actor,
        Action.JOB_CREATE,
        Resource(employer_id=actor.employer_id if actor else None),
    )
    fields = validate_job_fields({name: data.get(name) for name in EDITABLE_JOB_FIELDS})

    job = Job(employer_id=actor.employer_id, is_active=True, **fields)
    db.add(job)
    await db.commit()
    await db.refresh(job)

    log_audit_event(
        AuditAction.CREATE,
        ResourceType.JOB,
        resource_id=job.id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"title": job.title},
    )
    logger.info(f"Job {job.id} created by employer {actor.employer_id}")
    return job_to_dict(job)


@deadline("jobs.get", retry_once=True)
async def get_job(db: AsyncSession, actor: Optional[Actor], job_id: int) -> Dict[str, Any]:
    """
    Job detail with company information.

    Inactive jobs are reported as missing to everyone but their owner and admins.
    """
    job, employer = await load_job(db, job_id)
    if not is_allowed(actor, Action.JOB_READ, job_resource(job)):
        raise NotFound("Job not found", details={"job_id": job_id})
    return job_to_dict(job, employer)


@deadline("jobs.update")
async def update_job(
    db: AsyncSession,
    actor: Optional[Actor],
    job_id: int,
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """Edit a job. Only the fields present in ``changes`` are touched."""
    job, employer = await load_job(db, job_id)
    actor = authorize(actor, Action.JOB_UPDATE, job_resource(job))

    unknown = set(changes) - set(EDITABLE_JOB_FIELDS)
    if unknown:
        raise ValidationFailed(
            f"Unknown job fields: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    merged = {name: getattr(job, name) for name in EDITABLE_JOB_FIELDS}
    merged.update(changes)
    fields = validate_job_fields(merged)

    for name in changes:
        setattr(job, name, fields[name])
    await db.commit()
    await db.refresh(job)

    log_audit_event(
        AuditAction.UPDATE,
        ResourceType.JOB,
        resource_id=job.id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"fields": sorted(changes)},
    )
    return job_to_dict(job, employer)


async def _set_active(db: AsyncSession, actor: Optional[Actor], job_id: int, value: Optional[bool]) -> Dict[str, Any]:
    job, employer = await load_job(db, job_id)
    actor = authorize(actor, Action.JOB_TOGGLE, job_resource(job))

    previous = job.is_active
    job.is_active = (not previous) if value is None else value
    if job.is_active != previous:
        await db.commit()
        await db.refresh(job)
        log_audit_event(
            AuditAction.TOGGLE_ACTIVE,
            ResourceType.JOB,
            resource_id=job.id,
            actor_id=actor.principal_id,
            actor_role=actor.role.value,
            details={"is_active": job.is_active},
        )
    return job_to_dict(job, employer)


@deadline("jobs.toggle")
async def toggle_job(db: AsyncSession, actor: Optional[Actor], job_id: int) -> Dict[str, Any]:
    """Flip ``is_active``. Applications are unaffected."""
    return await _set_active(db, actor, job_id, None)


@deadline("jobs.set_active")
async def set_job_active(
    db: AsyncSession,
    actor: Optional[Actor],
    job_id: int,
    is_active: bool,
) -> Dict[str, Any]:
    """Idempotent form of ``toggle_job``."""
    return await _set_active(db, actor, job_id, is_active)


@deadline("jobs.delete")
async def delete_job(db: AsyncSession, actor: Optional[Actor], job_id: int) -> Dict[str, Any]:
    """
    Delete a job and every application to it in one transaction.

    Returns:
        {"job_id": ..., "applications_deleted": n}
    """
    job, _ = await load_job(db, job_id)
    actor = authorize(actor, Action.JOB_DELETE, job_resource(job))

    result = await db.execute(delete(Application).where(Application.job_id == job_id))
    await db.delete(job)
    await db.commit()

    deleted = result.rowcount or 0
    log_audit_event(
        AuditAction.DELETE,
        ResourceType.JOB,
        resource_id=job_id,
        actor_id=actor.principal_id,
        actor_role=actor.role.value,
        details={"applications_deleted": deleted},
    )
    logger.info(f"Job {job_id} deleted with {deleted} application(s)")
    return {"job_id": job_id, "applications_deleted": deleted}


# ==================== Listings ===================== #

@deadline("jobs.list_public", retry_once=True)
async def list_public_jobs(
    db: AsyncSession,
    actor: Optional[Actor] = None,
    keyword: Optional[str] = None,
    location: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    revalidate: Revalidate = None,
) -> Dict[str, Any]:
    """Active jobs, newest first, optionally filtered by keyword and location."""
    query = (
        select(Job, EmployerProfile)
        .join(EmployerProfile, Job.employer_id == EmployerProfile.id)
        .where(Job.is_active.is_(True))
    )
    if keyword and keyword.strip():
        pattern = f"%{keyword.strip()}%"
        query = query.where(
            or_(
                Job.title.ilike(pattern),
                Job.description.ilike(pattern),
                EmployerProfile.company_name.ilike(pattern),
            )
        )
    if location and location.strip():
        query = query.where(Job.location.ilike(f"%{location.strip()}%"))

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
    result = await db.execute(
        query.order_by(Job.created_at.desc(), Job.id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    rows = await filter_visible(
        actor,
        Action.JOB_READ,
        result.all(),
        lambda row: job_resource(row[0]),
        revalidate,
    )
    return _paginate([job_to_dict(job, employer) for job, employer in rows], total, page, page_size)


@deadline("jobs.list_for_employer", retry_once=True)
async def list_employer_jobs(
    db: AsyncSession,
    actor: Optional[Actor],
    revalidate: Revalidate = None,
) -> list[Dict[str, Any]]:
    """The acting employer's jobs in every state, newest first, with application counts."""
    actor = authorize(
        actor,
        Action.JOB_CREATE,
        Resource(employer_id=actor.employer_id if actor else None),
    )
    result = await db.execute(
        select(Job)
        .where(Job.employer_id == actor.employer_id)
        .order_by(Job.created_at.desc(), Job.id.desc())
    )
    jobs = await filter_visible(
        actor,
        Action.JOB_READ,
        result.scalars().all(),
        job_resource,
        revalidate,
    )
    counts = await _application_counts(db, [job.id for job in jobs])
    return [job_to_dict(job, application_count=counts.get(job.id, 0)) for job in jobs]


@deadline("jobs.list_all", retry_once=True)
async def list_all_jobs(
    db: AsyncSession,
    actor: Optional[Actor],
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    """Every job with its company, any state (admin)."""
    authorize(actor, Action.USER_MANAGE)

    query = select(Job, EmployerProfile).join(EmployerProfile, Job.employer_id == EmployerProfile.id)
    total = await db.scalar(select(func.count()).select_from(Job)) or 0
    result = await db.execute(
        query.order_by(Job.created_at.desc(), Job.id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    rows = result.all()
    counts = await _application_counts(db, [job.id for job, _ in rows])
    items = [
        job_to_dict(job, employer, application_count=counts.get(job.id, 0))
        for job, employer in rows
    ]
    return _paginate(items, total, page, page_size)
