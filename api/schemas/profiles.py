"""Profile and admin user-moderation schemas."""

from typing import Optional
from pydantic import BaseModel, Field

from database.models.candidates import WorkAuthorization
from database.models.users import UserRole


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)


class CandidateDetailsUpdate(BaseModel):
    work_authorization: Optional[WorkAuthorization] = None
    years_of_experience: Optional[int] = Field(None, description="Whole years, not negative")


class EmployerDetailsUpdate(BaseModel):
    company_name: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    company_website: Optional[str] = Field(None, max_length=2048)
    description: Optional[str] = None


class AdminUserUpdate(BaseModel):
    """
    Admin edit of another user.

    ``company_name`` and ``location`` are needed when moving a user without
    an employer profile to the employer role.
    """

    full_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    role: Optional[UserRole] = None
    company_name: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
