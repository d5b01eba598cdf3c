"""
Error handling with sanitized, structured error bodies.

Domain errors (``core.exceptions``) map to their own status code and code
string; infrastructure failures map to generic messages so no internals
leak. Every error response has the shape::

    {"error": {"code", "message", "path", "method", ["details"], ["request_id"]}}
"""

import logging
import traceback
from typing import Any, Callable, Optional
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
import re

from core.exceptions import JobBoardError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'\bcode["\s:=]+\d{6}\b', re.IGNORECASE),  # verification codes
]

HTTP_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: "NOT_AUTHENTICATED",
    status.HTTP_403_FORBIDDEN: "NOT_AUTHORIZED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_409_CONFLICT: "CONFLICT",
}


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract safe error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the traceback (only in debug)
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exc()
    return details


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Format request validation errors into a client-friendly list."""
    errors = []
    for error in exc.errors():
        error_dict = {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        if "input" in error:
            input_value = error["input"]
            if isinstance(input_value, (str, int, float, bool)):
                input_str = str(input_value)
                field = error_dict["field"].lower()
                if (
                    "password" not in field
                    and not any(pattern.search(input_str) for pattern in SENSITIVE_PATTERNS)
                ):
                    error_dict["input"] = input_value
        errors.append(error_dict)
    return errors


def classify_exception(
    exc: Exception,
    method: str,
    path: str,
    debug: bool = False,
) -> tuple[int, str, str, Optional[Any]]:
    """
    Map an exception to (status_code, error_code, message, details) and log it
    at a severity matching its kind.
    """
    details = None

    if isinstance(exc, JobBoardError):
        log = logger.warning if exc.recoverable else logger.error
        log(f"{exc.code}: {method} {path} - {sanitize_error_message(exc.message)}")
        return exc.status_code, exc.code, sanitize_error_message(exc.message), exc.details

    if isinstance(exc, StarletteHTTPException):
        message = sanitize_error_message(exc.detail)
        logger.warning(
            f"HTTP exception: {method} {path} - Status: {exc.status_code}, Message: {message}"
        )
        return (
            exc.status_code,
            HTTP_STATUS_CODES.get(exc.status_code, "HTTP_EXCEPTION"),
            message,
            None,
        )

    if isinstance(exc, RequestValidationError):
        details = format_validation_errors(exc)
        logger.warning(f"Validation error: {method} {path} - Errors: {details}")
        return 422, "VALIDATION_FAILED", "Request validation failed", details

    if isinstance(exc, IntegrityError):
        if debug:
            details = get_safe_error_details(exc, include_details=True)
        logger.error(f"Database integrity error: {method} {path}", exc_info=not debug)
        return (
            status.HTTP_409_CONFLICT,
            "CONFLICT",
            "Database integrity constraint violated",
            details,
        )

    if isinstance(exc, OperationalError):
        logger.error(f"Database operational error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            None,
        )

    if isinstance(exc, SQLAlchemyError):
        if debug:
            details = get_safe_error_details(exc, include_details=True)
        logger.error(f"SQLAlchemy error: {method} {path}", exc_info=not debug)
        return 500, "DATABASE_ERROR", "A database error occurred", details

    if isinstance(exc, RedisConnectionError):
        logger.error(f"Redis connection error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "SESSION_STORE_ERROR",
            "Session service temporarily unavailable",
            None,
        )

    if isinstance(exc, RedisError):
        if debug:
            details = get_safe_error_details(exc, include_details=True)
        logger.error(f"Redis error: {method} {path}", exc_info=not debug)
        return 500, "SESSION_STORE_ERROR", "A session store error occurred", details

    if isinstance(exc, TimeoutError):
        logger.error(f"Timeout error: {method} {path}")
        return status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT", "The request timed out", None

    if debug:
        details = get_safe_error_details(exc, include_details=True)
    logger.error(
        f"Unhandled exception: {method} {path} - "
        f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
        exc_info=True,
    )
    return 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred", details


def build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    path: str,
    method: str,
    details: Optional[Any] = None,
    request_id: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    error_response: dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        error_response["error"]["details"] = details
    if request_id:
        error_response["error"]["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=error_response, headers=headers)


def _auth_headers(status_code: int) -> Optional[dict[str, str]]:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return {"WWW-Authenticate": "Bearer"}
    return None


class ErrorHandlingMiddleware:
    """
    ASGI middleware catching anything the route-level handlers did not.

    Features:
    - Sanitizes error messages to prevent sensitive data leakage
    - Provides structured error responses
    - Logs errors with appropriate severity
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")

        status_code, error_code, message, details = classify_exception(
            exc, request_method, request_path, self.debug
        )

        request_id = None
        if "headers" in scope:
            raw = dict(scope["headers"]).get(b"x-request-id")
            if raw:
                request_id = raw.decode()

        return build_error_response(
            status_code,
            error_code,
            message,
            request_path,
            request_method,
            details=details,
            request_id=request_id,
            headers=_auth_headers(status_code),
        )


def setup_error_handlers(app, debug: bool = False):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether to include detailed error information
    """

    def respond(request: Request, exc: Exception) -> JSONResponse:
        status_code, error_code, message, details = classify_exception(
            exc, request.method, str(request.url.path), debug
        )
        request_id = getattr(request.state, "request_id", None) or request.headers.get(
            "x-request-id"
        )
        return build_error_response(
            status_code,
            error_code,
            message,
            str(request.url.path),
            request.method,
            details=details,
            request_id=request_id,
            headers=_auth_headers(status_code),
        )

    @app.exception_handler(JobBoardError)
    async def job_board_exception_handler(request: Request, exc: JobBoardError):
        """Handle domain errors."""
        return respond(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return respond(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return respond(request, exc)
