"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured request logging with PII masking
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    setup_logging,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredFormatter",
    "StructuredLoggingMiddleware",
    "setup_logging",
]
