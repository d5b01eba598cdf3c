"""
Identity resolution.

Maps an authenticated principal to its role and role-profile ids. The role
is read from the principal's Profile; a principal without a Profile (signed
up but not yet provisioned) resolves to ``None`` rather than failing.

Resolved actors are cached per principal for a bounded time and dropped
whenever a principal-change notification for that principal is published.
Notifications only reach resolvers in the same process, so the expiry bounds
how long another worker can act on a stale role. Mutating requests resolve
with ``fresh=True`` and never act on a cached role.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.authorization import Actor
from core.config import settings
from core.timeouts import with_deadline
from database.models.candidates import CandidateProfile
from database.models.employers import EmployerProfile
from database.models.users import Profile, UserRole

logger = logging.getLogger(__name__)


class PrincipalChangeKind(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    PROFILE_CHANGED = "profile_changed"
    DELETED = "deleted"


@dataclass(frozen=True)
class PrincipalChange:
    principal_id: str
    kind: PrincipalChangeKind


Subscriber = Callable[[PrincipalChange], None]


class PrincipalChangeNotifier:
    """In-process fan-out of principal lifecycle events."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: PrincipalChange) -> None:
        logger.debug(f"Principal {event.principal_id} changed: {event.kind.value}")
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    f"Principal change subscriber failed for {event.principal_id}"
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class IdentityResolver:
    """
    Resolve principals to actors.

    Lifecycle: ``start()`` subscribes to principal changes, ``close()``
    unsubscribes and drops the cache. The FastAPI app owns one instance for
    its lifetime (see ``api.main.lifespan``).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: PrincipalChangeNotifier,
        timeout: Optional[float] = None,
        cache_ttl: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._timeout = timeout
        self._cache_ttl = settings.identity_cache_ttl_seconds if cache_ttl is None else cache_ttl
        # principal id -> (actor, monotonic expiry)
        self._cache: dict[str, tuple[Actor, float]] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        if self.started:
            return
        self._unsubscribe = self._notifier.subscribe(self._on_principal_change)
        logger.info("Identity resolver started")

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cache.clear()
        logger.info("Identity resolver closed")

    def _on_principal_change(self, event: PrincipalChange) -> None:
        self._cache.pop(event.principal_id, None)

    def _cached(self, principal_id: str) -> Optional[Actor]:
        entry = self._cache.get(principal_id)
        if entry is None:
            return None
        actor, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._cache[principal_id]
            return None
        return actor

    async def _load(self, principal_id: str) -> Actor:
        async with self._session_factory() as session:
            profile = await session.get(Profile, principal_id)
            if profile is None:
                return Actor(principal_id=principal_id, role=None)

            candidate_id = None
            employer_id = None
            if profile.role == UserRole.CANDIDATE:
                candidate_id = await session.scalar(
                    select(CandidateProfile.id).where(CandidateProfile.user_id == principal_id)
                )
            elif profile.role == UserRole.EMPLOYER:
                employer_id = await session.scalar(
                    select(EmployerProfile.id).where(EmployerProfile.user_id == principal_id)
                )

            return Actor(
                principal_id=principal_id,
                role=profile.role,
                candidate_id=candidate_id,
                employer_id=employer_id,
            )

    async def resolve_actor(
        self,
        principal_id: str,
        timeout: Optional[float] = None,
        retry: bool = True,
        fresh: bool = False,
    ) -> Actor:
        """
        Resolve a principal to an actor, consulting the cache first.

        Args:
            principal_id: Principal to resolve
            timeout: Deadline for the profile lookup
            retry: Retry the lookup once after a timeout. Callers holding a
                hard deadline pass False so the deadline is not doubled.
            fresh: Skip the cache and re-read the role from storage

        Raises:
            RequestTimeout: The profile lookup exceeded its deadline
        """
        if not self.started:
            raise RuntimeError("IdentityResolver.start() has not been called")

        if not fresh:
            cached = self._cached(principal_id)
            if cached is not None:
                return cached

        actor = await with_deadline(
            lambda: self._load(principal_id),
            seconds=timeout if timeout is not None else self._timeout,
            operation="identity.resolve",
            retry_once=retry,
        )
        # Unprovisioned principals are not cached; provisioning publishes an event anyway
        if actor.role is not None:
            self._cache[principal_id] = (actor, time.monotonic() + self._cache_ttl)
        else:
            self._cache.pop(principal_id, None)
        return actor

    async def resolve_role(
        self,
        principal_id: str,
        timeout: Optional[float] = None,
        retry: bool = True,
    ) -> Optional[UserRole]:
        """Role of the principal, or None when it has no Profile yet."""
        actor = await self.resolve_actor(principal_id, timeout=timeout, retry=retry)
        return actor.role

    async def revalidate(self, actor: Actor) -> Actor:
        """Re-read the actor from storage, bypassing the cache."""
        fresh = await self.resolve_actor(actor.principal_id, fresh=True)
        if fresh != actor:
            logger.warning(
                f"Actor {actor.principal_id} changed on revalidation: "
                f"role {actor.role} -> {fresh.role}"
            )
        return fresh
