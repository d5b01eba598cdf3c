"""
Row-level policy at the storage boundary.

A ``before_flush`` listener checks every pending insert, update and delete
against the authorization table for the actor bound to the session
(``session.info["actor"]``). Services already authorize before writing;
this is the second, independent layer, so a bug in a service cannot emit a
write the policy table forbids.

Sessions without an actor (provisioning, maintenance) are trusted.

Usage:
    async with AsyncSessionLocal() as db:
        bind_actor(db, actor)
        ...
"""

import logging
from typing import Any, Optional

from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from core.authorization import Action, Actor, Resource, authorize
from core.exceptions import NotAuthorized
from database.models.applications import Application, IMMUTABLE_APPLICATION_COLUMNS
from database.models.candidates import CandidateProfile
from database.models.content import SiteContent
from database.models.employers import EmployerProfile
from database.models.jobs import Job
from database.models.users import Principal, Profile

logger = logging.getLogger(__name__)

ACTOR_KEY = "actor"


def bind_actor(session: AsyncSession | Session, actor: Optional[Actor]) -> None:
    """Attach the acting principal to a session; flushes are checked against it."""
    target = session.sync_session if isinstance(session, AsyncSession) else session
    if actor is None:
        target.info.pop(ACTOR_KEY, None)
    else:
        target.info[ACTOR_KEY] = actor


def bound_actor(session: Session) -> Optional[Actor]:
    return session.info.get(ACTOR_KEY)


def _changed(obj: Any, *columns: str) -> set[str]:
    state = inspect(obj)
    names = columns or tuple(attr.key for attr in state.mapper.column_attrs)
    return {name for name in names if state.attrs[name].history.has_changes()}


def _job_resource(session: Session, job_id: int) -> Resource:
    job = session.get(Job, job_id)
    if job is None:
        return Resource()
    return Resource(employer_id=job.employer_id, is_active=job.is_active)


# ==================== Per-model checks ===================== #

def _check_job(session: Session, actor: Actor, job: Job, op: str) -> None:
    resource = Resource(employer_id=job.employer_id, is_active=job.is_active)
    if op == "insert":
        authorize(actor, Action.JOB_CREATE, resource)
    elif op == "delete":
        authorize(actor, Action.JOB_DELETE, resource)
    else:
        changed = _changed(job)
        if "employer_id" in changed and not actor.is_admin:
            raise NotAuthorized("A job cannot be moved to another employer")
        if changed == {"is_active"} or changed == {"is_active", "updated_at"}:
            authorize(actor, Action.JOB_TOGGLE, resource)
        else:
            authorize(actor, Action.JOB_UPDATE, resource)


def _check_application(session: Session, actor: Actor, application: Application, op: str) -> None:
    if op == "insert":
        authorize(
            actor,
            Action.APPLICATION_CREATE,
            Resource(candidate_id=application.candidate_id),
        )
        return

    job_resource = _job_resource(session, application.job_id)
    if op == "delete":
        authorize(actor, Action.JOB_DELETE, job_resource)
        return

    changed = _changed(application)
    frozen = changed.intersection(IMMUTABLE_APPLICATION_COLUMNS)
    if frozen:
        logger.warning(f"Rejected change to immutable application columns {sorted(frozen)}")
        raise NotAuthorized(
            "Application job, candidate and submission time cannot be changed",
            details={"columns": sorted(frozen)},
        )
    authorize(
        actor,
        Action.APPLICATION_UPDATE_STATUS,
        Resource(employer_id=job_resource.employer_id),
    )


def _check_profile(session: Session, actor: Actor, profile: Profile, op: str) -> None:
    if op in ("insert", "delete"):
        authorize(actor, Action.USER_MANAGE)
        return
    if "role" in _changed(profile, "role"):
        authorize(actor, Action.USER_MANAGE)
    authorize(actor, Action.PROFILE_UPDATE, Resource(principal_id=profile.id))


def _check_role_profile(
    session: Session,
    actor: Actor,
    row: CandidateProfile | EmployerProfile,
    op: str,
) -> None:
    if op in ("insert", "delete"):
        authorize(actor, Action.USER_MANAGE)
        return
    if "user_id" in _changed(row, "user_id"):
        raise NotAuthorized("A profile cannot be reassigned to another user")
    authorize(actor, Action.PROFILE_UPDATE, Resource(principal_id=row.user_id))


def _check_principal(session: Session, actor: Actor, principal: Principal, op: str) -> None:
    if op in ("insert", "delete"):
        authorize(actor, Action.USER_MANAGE)
        return
    authorize(actor, Action.PROFILE_UPDATE, Resource(principal_id=principal.id))


def _check_content(session: Session, actor: Actor, content: SiteContent, op: str) -> None:
    authorize(actor, Action.CONTENT_UPDATE)


_CHECKS = {
    Job: _check_job,
    Application: _check_application,
    Profile: _check_profile,
    CandidateProfile: _check_role_profile,
    EmployerProfile: _check_role_profile,
    Principal: _check_principal,
    SiteContent: _check_content,
}


def check_pending_changes(session: Session) -> None:
    """Check every pending change in ``session`` against its bound actor."""
    actor = bound_actor(session)
    if actor is None:
        return

    with session.no_autoflush:
        for op, objects in (
            ("insert", session.new),
            ("update", session.dirty),
            ("delete", session.deleted),
        ):
            for obj in list(objects):
                check = _CHECKS.get(type(obj))
                if check is None:
                    continue
                if op == "update" and not session.is_modified(obj, include_collections=False):
                    continue
                check(session, actor, obj, op)


@event.listens_for(Session, "before_flush")
def _enforce_row_policies(session: Session, flush_context, instances) -> None:
    check_pending_changes(session)
