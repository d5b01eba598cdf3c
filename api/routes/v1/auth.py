"""
Authentication endpoints.

Provides:
- Sign-up with an emailed 6-digit verification code
- Email/password login (and the admin-only variant)
- Token refresh from the server-side session backup
- Logout
- The current principal, with its role once provisioned
"""

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_auth_service,
    get_db,
    get_identity_resolver,
    require_principal,
)
from api.schemas.auth import (
    LoginRequest,
    MeResponse,
    ResendCodeRequest,
    SignupRequest,
    SignupResponse,
    TokenRefreshRequest,
    TokenResponse,
    VerifyCodeRequest,
)
from api.schemas.common import ERROR_RESPONSES
from api.services.auth import AuthenticatedPrincipal, AuthService
from core.config import settings
from core.exceptions import RequestTimeout
from core.identity import IdentityResolver
from database.models.users import Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"], responses=ERROR_RESPONSES)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Register a candidate or employer account.

    Nothing role-specific exists until the emailed code is confirmed at
    ``/auth/verify``.
    """
    return await auth.sign_up(
        db,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        role=body.role,
        phone=body.phone,
        company=body.company.model_dump() if body.company else None,
    )


@router.post("/verify", response_model=TokenResponse)
async def verify_code(
    body: VerifyCodeRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Confirm the sign-up code, provision the profile and sign in."""
    return await auth.verify_signup_code(db, body.email, body.code)


@router.post("/resend-code")
async def resend_code(
    body: ResendCodeRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    return await auth.resend_code(db, body.email)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    return await auth.sign_in(db, body.email, body.password)


@router.post("/admin/login", response_model=TokenResponse)
async def admin_login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Sign-in that succeeds only for admins; other roles leave no session behind."""
    return await auth.sign_in(db, body.email, body.password, require_admin=True)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    body: TokenRefreshRequest,
    auth: AuthService = Depends(get_auth_service),
):
    return await auth.refresh(body.refresh_token)


@router.post("/logout")
async def logout(
    principal: AuthenticatedPrincipal = Depends(require_principal),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.sign_out(principal)
    return {"message": "Signed out"}


@router.get("/me", response_model=MeResponse)
async def me(
    principal: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    """
    The signed-in principal.

    Role resolution gets a short bootstrap deadline; when it runs out the
    response carries ``role: null`` with ``role_pending`` instead of failing.
    """
    account = await auth.get_principal(db, principal.principal_id)

    role_pending = False
    try:
        role = await resolver.resolve_role(
            principal.principal_id,
            timeout=settings.auth_bootstrap_timeout_seconds,
            retry=False,
        )
    except RequestTimeout:
        logger.warning(
            f"Role resolution for {principal.principal_id} timed out during bootstrap"
        )
        role, role_pending = None, True

    profile = await db.get(Profile, principal.principal_id) if role is not None else None
    return MeResponse(
        principal_id=account.id,
        email=account.email,
        email_verified=account.email_verified,
        role=role,
        role_pending=role_pending,
        full_name=profile.full_name if profile else None,
    )
