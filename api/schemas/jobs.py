"""Job posting schemas."""

from typing import Optional, Union
from pydantic import BaseModel, Field

from database.models.jobs import JobType


class JobCreate(BaseModel):
    """
    Schema for posting a job.

    ``skills_required`` takes a list or a comma-separated string; either is
    trimmed and de-duplicated.
    """

    title: str = Field(..., max_length=255)
    description: str = Field(...)
    location: str = Field(..., max_length=255)
    job_type: JobType
    salary_min: Optional[int] = Field(None, description="Annual salary lower bound")
    salary_max: Optional[int] = Field(None, description="Annual salary upper bound")
    skills_required: Union[list[str], str, None] = None
    experience_required: int = Field(default=0, description="Minimum years of experience")
    work_authorization: Optional[list[str]] = Field(
        None, description="Accepted work authorization categories"
    )


class JobUpdate(BaseModel):
    """Partial job edit; only supplied fields change."""

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    job_type: Optional[JobType] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    skills_required: Union[list[str], str, None] = None
    experience_required: Optional[int] = None
    work_authorization: Optional[list[str]] = None


class JobActiveUpdate(BaseModel):
    is_active: bool
