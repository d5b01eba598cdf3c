"""
Authentication service.

Sign-up creates an unverified principal and mails a 6-digit code. Verifying
the code provisions the Profile and role profile, then issues a session.
Sessions are backed up in the session store: refresh restores from the
backup and rotates tokens; sign-out clears it, which also invalidates any
access token still in flight.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import Conflict, NotAuthenticated, NotAuthorized, ValidationFailed
from core.identity import PrincipalChange, PrincipalChangeKind, PrincipalChangeNotifier
from core.integrations.email import EmailService
from core.security import (
    REFRESH_TOKEN_TYPE,
    AuditAction,
    ResourceType,
    create_token_pair,
    generate_verification_code,
    hash_password,
    hash_token,
    log_audit_event,
    tokens_match,
    verify_jwt_token,
    verify_password,
)
from core.sessions import SessionBackup, SessionStore
from core.timeouts import with_deadline
from core.utils.datetime import expires_in, is_past, now
from core.utils.validators import validate_email, validate_password_strength
from database.models.candidates import CandidateProfile
from database.models.employers import EmployerProfile
from database.models.users import Principal, Profile, UserRole
from api.services.profiles import clean_employer_changes, clean_profile_changes

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = (UserRole.CANDIDATE, UserRole.EMPLOYER)
INVALID_CODE_MESSAGE = "Invalid or expired verification code"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """Principal and session carried by a valid access token."""

    principal_id: str
    session_id: str


class AuthService:
    """Credentials, verification codes and session lifecycle."""

    def __init__(
        self,
        sessions: SessionStore,
        notifier: PrincipalChangeNotifier,
        email: EmailService,
    ):
        self.sessions = sessions
        self.notifier = notifier
        self.email = email

    # ==================== Sessions ==================== #

    async def _issue_session(self, principal_id: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        pair = create_token_pair(principal_id, session_id)
        backup = SessionBackup(
            session_id=pair.session_id,
            principal_id=principal_id,
            refresh_token_hash=hash_token(pair.refresh_token),
            created_at=now(),
            expires_at=pair.refresh_expires_at,
        )
        await with_deadline(lambda: self.sessions.backup(backup), operation="sessions.backup")
        return {
            "access_token": pair.access_token,
            "refresh_token": pair.refresh_token,
            "token_type": "bearer",
            "expires_in": pair.access_expires_in,
            "session_id": pair.session_id,
        }

    async def get_current_principal(self, access_token: str) -> AuthenticatedPrincipal:
        """
        Validate a bearer token and check that its session is still live.

        Raises:
            NotAuthenticated: Token invalid/expired, or session cleared
        """
        try:
            payload = verify_jwt_token(access_token)
        except jwt.ExpiredSignatureError:
            raise NotAuthenticated("Access token has expired") from None
        except jwt.InvalidTokenError:
            raise NotAuthenticated("Invalid access token") from None

        backup = await with_deadline(
            lambda: self.sessions.restore(payload.sid),
            operation="sessions.restore",
            retry_once=True,
        )
        if backup is None or backup.principal_id != payload.sub:
            raise NotAuthenticated("Session has ended")
        return AuthenticatedPrincipal(principal_id=payload.sub, session_id=payload.sid)

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """
        Restore the session backup and rotate both tokens.

        A refresh token that does not match the backup (already rotated, or
        forged) clears the session.
        """
        try:
            payload = verify_jwt_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        except jwt.ExpiredSignatureError:
            raise NotAuthenticated("Refresh token has expired") from None
        except jwt.InvalidTokenError:
            raise NotAuthenticated("Invalid refresh token") from None

        backup = await with_deadline(
            lambda: self.sessions.restore(payload.sid),
            operation="sessions.restore",
            retry_once=True,
        )
        if backup is None:
            raise NotAuthenticated("Session has ended")
        if backup.principal_id != payload.sub or not tokens_match(refresh_token, backup.refresh_token_hash):
            logger.warning(f"Refresh token mismatch for session {payload.sid}, clearing session")
            await with_deadline(lambda: self.sessions.clear(payload.sid), operation="sessions.clear")
            raise NotAuthenticated("Session has ended")

        return await self._issue_session(payload.sub, payload.sid)

    async def sign_out(self, principal: AuthenticatedPrincipal) -> None:
        await with_deadline(
            lambda: self.sessions.clear(principal.session_id), operation="sessions.clear"
        )
        self.notifier.publish(PrincipalChange(principal.principal_id, PrincipalChangeKind.SIGNED_OUT))
        log_audit_event(AuditAction.SIGN_OUT, ResourceType.PRINCIPAL, actor_id=principal.principal_id)

    # ==================== Sign-up ==================== #

    def _issue_code(self, principal: Principal) -> str:
        """Store the hash of a fresh code on the principal; the caller commits."""
        code = generate_verification_code()
        principal.verification_code_hash = hash_token(code)
        principal.verification_expires_at = expires_in(settings.verification_code_ttl_minutes)
        return code

    async def _mail_code(self, email: str, code: str) -> None:
        await with_deadline(
            lambda: self.email.send_verification_code(
                email, code, settings.verification_code_ttl_minutes
            ),
            operation="email.send_verification_code",
        )

    async def sign_up(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        full_name: str,
        role: UserRole | str,
        phone: Optional[str] = None,
        company: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Register a candidate or employer and mail a verification code.

        Employers must supply ``company`` with ``company_name`` and
        ``location`` (``company_website`` and ``description`` optional).
        Signing up again with an unverified email replaces the pending
        details and sends a fresh code.
        """
        try:
            role = UserRole(role)
        except ValueError:
            raise ValidationFailed(f"Unknown role '{role}'", field="role") from None
        if role not in SELF_SERVICE_ROLES:
            raise ValidationFailed("Only candidate and employer accounts can sign up", field="role")

        ok, normalized = validate_email(email)
        if not ok:
            raise ValidationFailed(normalized, field="email")
        email = normalized

        strong, problems = validate_password_strength(password)
        if not strong:
            raise ValidationFailed("; ".join(problems), field="password")

        signup_data: Dict[str, Any] = {"role": role.value}
        signup_data.update(clean_profile_changes({"full_name": full_name, "phone": phone}))
        if role == UserRole.EMPLOYER:
            company = company or {}
            signup_data["company"] = clean_employer_changes(
                {
                    "company_name": company.get("company_name"),
                    "location": company.get("location"),
                    "company_website": company.get("company_website"),
                    "description": company.get("description"),
                }
            )

        principal = await db.scalar(select(Principal).where(Principal.email == email))
        if principal is not None and principal.email_verified:
            raise Conflict("An account with this email already exists", details={"field": "email"})

        if principal is None:
            principal = Principal(email=email, hashed_password=hash_password(password))
            db.add(principal)
        else:
            principal.hashed_password = hash_password(password)
        principal.signup_data = signup_data

        code = self._issue_code(principal)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise Conflict("An account with this email already exists", details={"field": "email"}) from None

        # Mailed only once the code is stored
        await self._mail_code(email, code)

        logger.info(f"Principal {principal.id} signed up as {role.value}, verification pending")
        return {
            "principal_id": principal.id,
            "email": principal.email,
            "verification_required": True,
        }

    async def resend_code(self, db: AsyncSession, email: str) -> Dict[str, Any]:
        """Issue a fresh code. Unknown or verified emails get the same answer."""
        ok, normalized = validate_email(email)
        if ok:
            principal = await db.scalar(select(Principal).where(Principal.email == normalized))
            if principal is not None and not principal.email_verified:
                code = self._issue_code(principal)
                await db.commit()
                await self._mail_code(principal.email, code)
            else:
                logger.info("Verification code requested for unknown or verified email")
        return {"sent": True}

    async def verify_signup_code(self, db: AsyncSession, email: str, code: str) -> Dict[str, Any]:
        """
        Confirm the sign-up code, provision the profile and sign in.

        Raises:
            ValidationFailed: Code missing, wrong or expired
        """
        ok, normalized = validate_email(email)
        principal = (
            await db.scalar(select(Principal).where(Principal.email == normalized)) if ok else None
        )
        if (
            principal is None
            or principal.email_verified
            or not principal.verification_code_hash
            or not tokens_match(code.strip(), principal.verification_code_hash)
        ):
            raise ValidationFailed(INVALID_CODE_MESSAGE, field="code")
        if principal.verification_expires_at is None or is_past(principal.verification_expires_at):
            raise ValidationFailed(INVALID_CODE_MESSAGE, field="code")

        self._provision(db, principal)
        principal.email_verified = True
        principal.verification_code_hash = None
        principal.verification_expires_at = None
        principal.signup_data = None
        await db.commit()

        tokens = await self._issue_session(principal.id)
        self.notifier.publish(PrincipalChange(principal.id, PrincipalChangeKind.SIGNED_IN))
        log_audit_event(
            AuditAction.CREATE,
            ResourceType.PROFILE,
            resource_id=principal.id,
            actor_id=principal.id,
            details={"email": principal.email},
        )
        return tokens

    def _provision(self, db: AsyncSession, principal: Principal) -> None:
        data = principal.signup_data or {}
        role = UserRole(data.get("role", UserRole.CANDIDATE.value))
        db.add(
            Profile(
                id=principal.id,
                full_name=data.get("full_name") or principal.email.split("@")[0],
                email=principal.email,
                phone=data.get("phone"),
                role=role,
            )
        )
        if role == UserRole.CANDIDATE:
            db.add(CandidateProfile(user_id=principal.id))
        elif role == UserRole.EMPLOYER:
            db.add(EmployerProfile(user_id=principal.id, **data.get("company", {})))

    # ==================== Sign-in ==================== #

    async def sign_in(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        require_admin: bool = False,
    ) -> Dict[str, Any]:
        """
        Email/password sign-in.

        With ``require_admin`` the session is cleared again and
        ``NotAuthorized`` raised unless the principal is an admin.
        """
        ok, normalized = validate_email(email)
        principal = (
            await db.scalar(select(Principal).where(Principal.email == normalized)) if ok else None
        )
        if principal is None or not verify_password(password, principal.hashed_password):
            log_audit_event(
                AuditAction.ACCESS_DENIED,
                ResourceType.PRINCIPAL,
                details={"email": normalized if ok else email, "reason": "bad_credentials"},
            )
            raise NotAuthenticated(INVALID_CREDENTIALS_MESSAGE)
        if not principal.email_verified:
            raise NotAuthorized(
                "Email address has not been verified",
                details={"verification_required": True},
            )

        tokens = await self._issue_session(principal.id)

        if require_admin:
            profile = await db.get(Profile, principal.id)
            if profile is None or profile.role != UserRole.ADMIN:
                await with_deadline(
                    lambda: self.sessions.clear(tokens["session_id"]), operation="sessions.clear"
                )
                log_audit_event(
                    AuditAction.ACCESS_DENIED,
                    ResourceType.PRINCIPAL,
                    resource_id=principal.id,
                    actor_id=principal.id,
                    actor_role=profile.role.value if profile else None,
                    details={"reason": "admin_required"},
                )
                raise NotAuthorized("Admin access required")

        self.notifier.publish(PrincipalChange(principal.id, PrincipalChangeKind.SIGNED_IN))
        log_audit_event(
            AuditAction.SIGN_IN,
            ResourceType.PRINCIPAL,
            resource_id=principal.id,
            actor_id=principal.id,
            details={"admin": require_admin},
        )
        return tokens

    async def get_principal(self, db: AsyncSession, principal_id: str) -> Principal:
        principal = await db.get(Principal, principal_id)
        if principal is None:
            raise NotAuthenticated("Account no longer exists")
        return principal
