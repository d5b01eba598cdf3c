"""
Security utilities.

Provides password hashing (bcrypt), JWT access/refresh tokens, sign-up
verification codes, and audit logging with PII masking.
"""

import hashlib
import hmac
import json
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

import bcrypt
import jwt

from core.config import settings

logger = logging.getLogger("security.audit")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


# ==================== Passwords ==================== #

def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: The plain text password to hash

    Returns:
        The bcrypt hash as a string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except ValueError:
        return False


# ==================== Tokens ==================== #

@dataclass(frozen=True)
class JWTPayload:
    """Decoded token claims."""

    sub: str
    sid: str
    type: str
    exp: datetime


@dataclass(frozen=True)
class TokenPair:
    session_id: str
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_at: datetime


def _encode(principal_id: str, session_id: str, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": principal_id,
        "sid": session_id,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    principal_id: str,
    session_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a short-lived access token bound to a session."""
    return _encode(
        principal_id,
        session_id,
        ACCESS_TOKEN_TYPE,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(
    principal_id: str,
    session_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a refresh token bound to a session."""
    return _encode(
        principal_id,
        session_id,
        REFRESH_TOKEN_TYPE,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def create_token_pair(principal_id: str, session_id: Optional[str] = None) -> TokenPair:
    """Issue an access/refresh pair for a (new or existing) session id."""
    session_id = session_id or uuid.uuid4().hex
    refresh_delta = timedelta(days=settings.refresh_token_expire_days)
    return TokenPair(
        session_id=session_id,
        access_token=create_access_token(principal_id, session_id),
        refresh_token=create_refresh_token(principal_id, session_id, refresh_delta),
        access_expires_in=settings.access_token_expire_minutes * 60,
        refresh_expires_at=datetime.now(timezone.utc) + refresh_delta,
    )


def verify_jwt_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> JWTPayload:
    """
    Decode and validate a token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the token is malformed, forged or of the wrong type
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "sid", "type", "exp"]},
    )
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token")
    return JWTPayload(
        sub=payload["sub"],
        sid=payload["sid"],
        type=payload["type"],
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def hash_token(token: str) -> str:
    """Digest used to store refresh tokens and verification codes at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def tokens_match(token: str, token_hash: str) -> bool:
    return hmac.compare_digest(hash_token(token), token_hash)


def generate_verification_code(length: int = 6) -> str:
    """Numeric one-time code mailed at sign-up."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


# ==================== Audit ==================== #

class AuditAction(str, Enum):
    """Audit log action types."""
    SIGN_IN = "SIGN_IN"
    SIGN_OUT = "SIGN_OUT"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TOGGLE_ACTIVE = "TOGGLE_ACTIVE"
    STATUS_CHANGE = "STATUS_CHANGE"
    ACCESS_DENIED = "ACCESS_DENIED"


class ResourceType(str, Enum):
    """Resource types for audit logging."""
    PRINCIPAL = "PRINCIPAL"
    PROFILE = "PROFILE"
    JOB = "JOB"
    APPLICATION = "APPLICATION"
    SITE_CONTENT = "SITE_CONTENT"
    RESUME = "RESUME"


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "phone", "full_name", "name",
    "contact_email", "contact_phone", "contact_address",
    "cover_letter",
}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    # Partial masking: show first char and length indicator
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data[:5]]  # Limit list items
    else:
        return data


def log_audit_event(
    action: AuditAction,
    resource_type: ResourceType,
    resource_id: Optional[Any] = None,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Log an audit event as a single structured JSON line.

    Returns:
        The event that was logged
    """
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": "AUDIT",
        "action": action.value,
        "resource_type": resource_type.value,
        "resource_id": str(resource_id) if resource_id is not None else None,
        "actor_id": actor_id,
        "actor_role": actor_role,
        "details": mask_pii(details) if details else None,
    }
    logger.info(json.dumps(event, default=str))
    return event
