"""
Authorization gate.

The role/ownership policy lives here as data (``ROLE_PERMISSIONS``) and is
evaluated in two places:

1. Services call ``authorize`` before issuing any mutation, and
   ``filter_visible`` on rows returned by storage.
2. ``database.policies`` runs the same table on every flush, so a write that
   slips past a service is still refused at the storage boundary.

Scopes:
    ANY            - any row
    OWN            - rows owned by the actor (employer/candidate/principal id match)
    ACTIVE         - active jobs only
    ACTIVE_OR_OWN  - active jobs, or the actor's own jobs in any state
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from core.exceptions import NotAuthenticated, NotAuthorized
from core.security import AuditAction, ResourceType, log_audit_event
from database.models.users import UserRole

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Action(str, Enum):
    """Operations the gate decides on."""

    JOB_READ = "job:read"
    JOB_CREATE = "job:create"
    JOB_UPDATE = "job:update"
    JOB_DELETE = "job:delete"
    JOB_TOGGLE = "job:toggle"

    APPLICATION_CREATE = "application:create"
    APPLICATION_READ = "application:read"
    APPLICATION_UPDATE_STATUS = "application:update_status"
    APPLICATION_LIST_FOR_JOB = "application:list_for_job"

    PROFILE_READ = "profile:read"
    PROFILE_UPDATE = "profile:update"
    RESUME_UPLOAD = "resume:upload"

    CONTENT_READ = "content:read"
    CONTENT_UPDATE = "content:update"

    USER_MANAGE = "user:manage"


class Scope(str, Enum):
    ANY = "any"
    OWN = "own"
    ACTIVE = "active"
    ACTIVE_OR_OWN = "active_or_own"


@dataclass(frozen=True)
class Actor:
    """An authenticated principal with its resolved role and profile ids."""

    principal_id: str
    role: Optional[UserRole] = None
    candidate_id: Optional[int] = None
    employer_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_candidate(self) -> bool:
        return self.role == UserRole.CANDIDATE

    @property
    def is_employer(self) -> bool:
        return self.role == UserRole.EMPLOYER


@dataclass(frozen=True)
class Resource:
    """Ownership facts about the row an action targets."""

    employer_id: Optional[int] = None
    candidate_id: Optional[int] = None
    principal_id: Optional[str] = None
    is_active: Optional[bool] = None


# Anonymous visitors and principals whose profile is not provisioned yet
ANONYMOUS_PERMISSIONS: dict[Action, Scope] = {
    Action.JOB_READ: Scope.ACTIVE,
    Action.CONTENT_READ: Scope.ANY,
}

ROLE_PERMISSIONS: dict[UserRole, dict[Action, Scope]] = {
    UserRole.CANDIDATE: {
        Action.JOB_READ: Scope.ACTIVE,
        Action.APPLICATION_CREATE: Scope.OWN,
        Action.APPLICATION_READ: Scope.OWN,
        Action.PROFILE_READ: Scope.OWN,
        Action.PROFILE_UPDATE: Scope.OWN,
        Action.RESUME_UPLOAD: Scope.OWN,
        Action.CONTENT_READ: Scope.ANY,
    },
    UserRole.EMPLOYER: {
        Action.JOB_READ: Scope.ACTIVE_OR_OWN,
        Action.JOB_CREATE: Scope.OWN,
        Action.JOB_UPDATE: Scope.OWN,
        Action.JOB_DELETE: Scope.OWN,
        Action.JOB_TOGGLE: Scope.OWN,
        Action.APPLICATION_READ: Scope.OWN,
        Action.APPLICATION_UPDATE_STATUS: Scope.OWN,
        Action.APPLICATION_LIST_FOR_JOB: Scope.OWN,
        Action.PROFILE_READ: Scope.OWN,
        Action.PROFILE_UPDATE: Scope.OWN,
        Action.CONTENT_READ: Scope.ANY,
    },
    UserRole.ADMIN: {
        Action.JOB_READ: Scope.ANY,
        Action.JOB_UPDATE: Scope.ANY,
        Action.JOB_DELETE: Scope.ANY,
        Action.JOB_TOGGLE: Scope.ANY,
        Action.APPLICATION_READ: Scope.ANY,
        Action.APPLICATION_UPDATE_STATUS: Scope.ANY,
        Action.APPLICATION_LIST_FOR_JOB: Scope.ANY,
        Action.PROFILE_READ: Scope.ANY,
        Action.PROFILE_UPDATE: Scope.ANY,
        Action.CONTENT_READ: Scope.ANY,
        Action.CONTENT_UPDATE: Scope.ANY,
        Action.USER_MANAGE: Scope.ANY,
    },
}


def permissions_for(actor: Optional[Actor]) -> dict[Action, Scope]:
    if actor is None or actor.role is None:
        return ANONYMOUS_PERMISSIONS
    return ROLE_PERMISSIONS.get(actor.role, ANONYMOUS_PERMISSIONS)


def _owns(actor: Actor, resource: Resource) -> bool:
    if resource.employer_id is not None and resource.employer_id == actor.employer_id:
        return True
    if resource.candidate_id is not None and resource.candidate_id == actor.candidate_id:
        return True
    if resource.principal_id is not None and resource.principal_id == actor.principal_id:
        return True
    return False


def is_allowed(
    actor: Optional[Actor],
    action: Action,
    resource: Optional[Resource] = None,
) -> bool:
    """Evaluate the policy table without side effects."""
    scope = permissions_for(actor).get(action)
    if scope is None:
        return False
    if scope == Scope.ANY:
        return True

    resource = resource or Resource()
    owned = actor is not None and _owns(actor, resource)

    if scope == Scope.OWN:
        return owned
    if scope == Scope.ACTIVE:
        return resource.is_active is True
    if scope == Scope.ACTIVE_OR_OWN:
        return resource.is_active is True or owned
    return False


def _log_denial(actor: Optional[Actor], action: Action, resource: Optional[Resource]) -> None:
    logger.warning(
        f"Denied {action.value} for "
        f"{actor.principal_id if actor else 'anonymous'} "
        f"(role={actor.role.value if actor and actor.role else None})"
    )
    log_audit_event(
        action=AuditAction.ACCESS_DENIED,
        resource_type=_resource_type(action),
        actor_id=actor.principal_id if actor else None,
        actor_role=actor.role.value if actor and actor.role else None,
        details={
            "permission": action.value,
            "resource": resource.__dict__ if resource else None,
        },
    )


def _resource_type(action: Action) -> ResourceType:
    prefix = action.value.split(":", 1)[0]
    return {
        "job": ResourceType.JOB,
        "application": ResourceType.APPLICATION,
        "profile": ResourceType.PROFILE,
        "resume": ResourceType.RESUME,
        "content": ResourceType.SITE_CONTENT,
        "user": ResourceType.PRINCIPAL,
    }[prefix]


def authorize(
    actor: Optional[Actor],
    action: Action,
    resource: Optional[Resource] = None,
) -> Optional[Actor]:
    """
    Require that ``actor`` may perform ``action`` on ``resource``.

    Returns:
        The actor (None only for actions open to anonymous visitors)

    Raises:
        NotAuthenticated: No actor and the action is not open to anonymous visitors
        NotAuthorized: The actor's role or ownership fails the policy table
    """
    if is_allowed(actor, action, resource):
        return actor

    _log_denial(actor, action, resource)
    if actor is None:
        raise NotAuthenticated()
    raise NotAuthorized(
        f"You do not have permission to perform {action.value}",
        details={"permission": action.value},
    )


def _partition(
    actor: Optional[Actor],
    action: Action,
    rows: Iterable[T],
    resource_of: Callable[[T], Resource],
) -> tuple[list[T], list[T]]:
    kept: list[T] = []
    dropped: list[T] = []
    for row in rows:
        (kept if is_allowed(actor, action, resource_of(row)) else dropped).append(row)
    return kept, dropped


async def filter_visible(
    actor: Optional[Actor],
    action: Action,
    rows: Iterable[T],
    resource_of: Callable[[T], Resource],
    revalidate: Optional[Callable[[Actor], Awaitable[Actor]]] = None,
) -> list[T]:
    """
    Re-check rows returned by storage against the policy table.

    If any row fails and a ``revalidate`` callback is supplied, the actor's
    role is re-resolved (bypassing caches) and the rows are checked again
    before anything is dropped. Rows that still fail are dropped and logged.
    """
    rows = list(rows)
    kept, dropped = _partition(actor, action, rows, resource_of)
    if not dropped:
        return kept

    if actor is not None and revalidate is not None:
        actor = await revalidate(actor)
        kept, dropped = _partition(actor, action, rows, resource_of)
        if not dropped:
            return kept

    logger.warning(
        f"Dropped {len(dropped)} row(s) violating {action.value} for "
        f"{actor.principal_id if actor else 'anonymous'}"
    )
    for row in dropped:
        _log_denial(actor, action, resource_of(row))
    return kept
