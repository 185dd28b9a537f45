"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Bearer-token authentication
- Job posting authorization policy
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    StructuredFormatter,
    setup_logging,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    CurrentUser,
    get_current_user,
    get_auth_error,
)

from core.middleware.authorization import (
    check_can_post_jobs,
    check_can_modify_job,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "StructuredFormatter",
    "setup_logging",
    # Authentication
    "AuthenticationMiddleware",
    "CurrentUser",
    "get_current_user",
    "get_auth_error",
    # Authorization
    "check_can_post_jobs",
    "check_can_modify_job",
]
