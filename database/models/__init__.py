"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from database.models.users import Principal, Profile, UserRole
from database.models.candidates import CandidateProfile, WorkAuthorization
from database.models.employers import EmployerProfile
from database.models.jobs import Job, JobType
from database.models.applications import Application, ApplicationStatus
from database.models.content import SiteContent

__all__ = [
    "Principal",
    "Profile",
    "UserRole",
    "CandidateProfile",
    "WorkAuthorization",
    "EmployerProfile",
    "Job",
    "JobType",
    "Application",
    "ApplicationStatus",
    "SiteContent",
]
