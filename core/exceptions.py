"""
Domain error taxonomy.

Every guard in the job/application lifecycle raises one of these so the
HTTP layer can pick the right status code and user-facing message.
"""

from typing import Any, Optional


class JobBoardError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
    recoverable = False
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotAuthenticated(JobBoardError):
    """No principal on the request; the client should send the user to sign-in."""

    code = "NOT_AUTHENTICATED"
    status_code = 401
    recoverable = True
    default_message = "Authentication required"


class NotAuthorized(JobBoardError):
    """The principal's role or ownership fails the policy table."""

    code = "NOT_AUTHORIZED"
    status_code = 403
    recoverable = True
    default_message = "Access denied"


class NotFound(JobBoardError):
    code = "NOT_FOUND"
    status_code = 404
    recoverable = True
    default_message = "Resource not found"


class Conflict(JobBoardError):
    code = "CONFLICT"
    status_code = 409
    recoverable = True
    default_message = "Resource already exists"


class AlreadyApplied(Conflict):
    """A second application for the same (candidate, job) pair."""

    code = "ALREADY_APPLIED"
    default_message = "You have already applied to this job."


class RequestTimeout(JobBoardError):
    """An external call exceeded its deadline."""

    code = "TIMEOUT"
    status_code = 504
    recoverable = True
    default_message = "The request timed out"

    def __init__(self, operation: str, seconds: float):
        self.operation = operation
        self.seconds = seconds
        super().__init__(
            f"{operation} timed out after {seconds:g}s",
            details={"operation": operation, "timeout_seconds": seconds},
        )


class ValidationFailed(JobBoardError):
    """Caller-correctable input problem; nothing was persisted."""

    code = "VALIDATION_FAILED"
    status_code = 422
    recoverable = True
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        if field and details is None:
            details = {"field": field}
        self.field = field
        super().__init__(message, details)


class ResumeRequired(ValidationFailed):
    code = "RESUME_REQUIRED"
    default_message = "You must upload a resume to your profile before applying."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="resume_url")
