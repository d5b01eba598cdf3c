"""Authentication request/response schemas."""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from database.models.users import UserRole


class CompanyDetails(BaseModel):
    """Company fields collected when an employer signs up."""

    company_name: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=255)
    company_website: Optional[str] = Field(None, max_length=2048)
    description: Optional[str] = None


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = Field(description="candidate or employer")
    phone: Optional[str] = Field(None, max_length=32)
    company: Optional[CompanyDetails] = None

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def company_for_employers(self) -> "SignupRequest":
        if self.role == UserRole.EMPLOYER and self.company is None:
            raise ValueError("Employers must provide company details")
        return self


class SignupResponse(BaseModel):
    principal_id: str
    email: str
    verification_required: bool


class VerifyCodeRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\s*\d{6}\s*$", description="6-digit code from the email")


class ResendCodeRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    """Issued session tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")
    session_id: str


class MeResponse(BaseModel):
    """
    The signed-in principal.

    ``role`` is null until the profile exists, or while role resolution is
    still pending (``role_pending``); clients show a guest view meanwhile.
    """

    principal_id: str
    email: str
    email_verified: bool
    role: Optional[UserRole] = None
    role_pending: bool = False
    full_name: Optional[str] = None
