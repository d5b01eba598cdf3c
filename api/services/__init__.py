"""
API Services Layer.

Database operations behind the API endpoints. Every function takes the
session and the acting principal explicitly and checks the policy table
before touching storage.
"""

from api.services.auth import (
    AuthService,
    AuthenticatedPrincipal,
)

from api.services.jobs import (
    create_job,
    get_job,
    update_job,
    toggle_job,
    set_job_active,
    delete_job,
    list_public_jobs,
    list_employer_jobs,
    list_all_jobs,
)

from api.services.applications import (
    apply_to_job,
    update_application_status,
    get_application,
    list_candidate_applications,
    list_job_applications,
    has_applied,
)

from api.services.profiles import (
    get_profile,
    update_profile,
    update_candidate_details,
    update_employer_details,
    upload_resume,
)

from api.services.users import (
    get_overview,
    list_users,
    get_user,
    update_user,
    delete_user,
)

from api.services.content import (
    get_about_content,
    update_about_content,
)

__all__ = [
    # Auth
    "AuthService",
    "AuthenticatedPrincipal",
    # Jobs
    "create_job",
    "get_job",
    "update_job",
    "toggle_job",
    "set_job_active",
    "delete_job",
    "list_public_jobs",
    "list_employer_jobs",
    "list_all_jobs",
    # Applications
    "apply_to_job",
    "update_application_status",
    "get_application",
    "list_candidate_applications",
    "list_job_applications",
    "has_applied",
    # Profiles
    "get_profile",
    "update_profile",
    "update_candidate_details",
    "update_employer_details",
    "upload_resume",
    # Users
    "get_overview",
    "list_users",
    "get_user",
    "update_user",
    "delete_user",
    # Content
    "get_about_content",
    "update_about_content",
]
