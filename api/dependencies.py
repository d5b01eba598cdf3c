"""FastAPI dependencies for dependency injection."""

from typing import AsyncIterator, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.auth import AuthenticatedPrincipal, AuthService
from core.authorization import Actor
from core.exceptions import NotAuthenticated
from core.identity import IdentityResolver, PrincipalChangeNotifier
from core.sessions import SessionStore
from core.storage.base import BlobStorage
from database.policies import bind_actor


security = HTTPBearer(auto_error=False)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


# ==================== Collaborators ==================== #

async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Unscoped session: auth flows and provisioning run without a bound actor."""
    async with request.app.state.session_factory() as session:
        yield session


def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity_resolver


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_notifier(request: Request) -> PrincipalChangeNotifier:
    return request.app.state.notifier


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blob_storage


# ==================== Principal / Actor ==================== #

async def get_optional_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[AuthenticatedPrincipal]:
    """
    Principal carried by the bearer token, or None when no token was sent.

    A token that is present but invalid, expired or whose session was
    cleared is rejected rather than treated as anonymous.
    """
    if credentials is None:
        return None
    principal = await auth.get_current_principal(credentials.credentials)
    request.state.principal_id = principal.principal_id
    return principal


async def require_principal(
    principal: Optional[AuthenticatedPrincipal] = Depends(get_optional_principal),
) -> AuthenticatedPrincipal:
    if principal is None:
        raise NotAuthenticated()
    return principal


async def get_optional_actor(
    request: Request,
    principal: Optional[AuthenticatedPrincipal] = Depends(get_optional_principal),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[Actor]:
    """
    Resolved actor; principals without a profile get an actor with no role.

    Writes re-read the role from storage so they are never checked against
    a cached role that another worker has since changed.
    """
    if principal is None:
        return None
    return await resolver.resolve_actor(
        principal.principal_id,
        fresh=request.method not in SAFE_METHODS,
    )


async def require_actor(
    actor: Optional[Actor] = Depends(get_optional_actor),
) -> Actor:
    if actor is None:
        raise NotAuthenticated()
    return actor


async def get_scoped_db(
    db: AsyncSession = Depends(get_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
) -> AsyncSession:
    """Session whose flushes are checked against the acting principal."""
    bind_actor(db, actor)
    return db
