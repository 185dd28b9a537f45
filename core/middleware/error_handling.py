"""
Error handling middleware with security-compliant error sanitization.

Domain errors (``core.exceptions.AppError``) are rendered by exception
handlers registered in ``setup_error_handlers``. Anything that escapes the
routing layer, database errors included, is caught by
``ErrorHandlingMiddleware`` so no raw storage error reaches the client.
"""

import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import AppError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged or returned
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r"\bBearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
]


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
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_traceback: bool = False) -> dict[str, Any]:
    """
    Extract error details without exposing sensitive information.

    The traceback is only included when ``include_traceback`` is set, which
    the application does in debug mode.
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }

    if include_traceback:
        details["traceback"] = sanitize_error_message(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        )

    return details


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic validation errors into ``{field, message, type}`` items."""
    errors = []
    for error in exc.errors():
        # Drop the "body"/"query" prefix so field names match the payload
        loc = [str(part) for part in error.get("loc", ())]
        if len(loc) > 1 and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        errors.append(
            {
                "field": ".".join(loc),
                "message": sanitize_error_message(error.get("msg", "")),
                "type": error.get("type"),
            }
        )
    return errors


def _request_id_from_scope(scope: dict) -> Optional[str]:
    # Prefer the id assigned by the logging middleware
    state = scope.get("state") or {}
    request_id = state.get("request_id")
    if request_id:
        return request_id

    for key, value in scope.get("headers", []):
        if key.lower() == b"x-request-id":
            return value.decode("latin-1")
    return None


def build_error_response(
    scope: dict,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    """Build the standard ``{"error": {...}}`` response body."""
    error = {
        "code": code,
        "message": message,
        "path": scope.get("path", "unknown"),
        "method": scope.get("method", "unknown"),
    }
    if details is not None:
        error["details"] = details

    request_id = _request_id_from_scope(scope)
    if request_id:
        error["request_id"] = request_id

    return JSONResponse(status_code=status_code, content={"error": error})


class ErrorHandlingMiddleware:
    """
    Outermost error guard.

    Maps database errors to 409/503/500 and any other unhandled exception
    to a generic 500, logging each with appropriate severity.
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include tracebacks in error details
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
        """
        Map an exception to an error response.

        Args:
            exc: The exception to handle
            scope: ASGI scope for context

        Returns:
            JSONResponse with error details
        """
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")
        details = None

        if isinstance(exc, AppError):
            # Normally handled by the registered handler; kept for errors
            # raised outside the router, e.g. in other middleware
            logger.warning(
                f"Application error: {request_method} {request_path} - "
                f"Status: {exc.status_code}, Code: {exc.code}"
            )
            return build_error_response(
                scope, exc.status_code, exc.code, exc.message, exc.details
            )

        if isinstance(exc, IntegrityError):
            status_code = status.HTTP_409_CONFLICT
            error_code = "INTEGRITY_ERROR"
            message = "Database integrity constraint violated"
            logger.error(
                f"Database integrity error: {request_method} {request_path}",
                exc_info=True,
            )

        elif isinstance(exc, OperationalError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            error_code = "DATABASE_ERROR"
            message = "Database service temporarily unavailable"
            logger.error(
                f"Database operational error: {request_method} {request_path}",
                exc_info=True,
            )

        elif isinstance(exc, SQLAlchemyError):
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            error_code = "DATABASE_ERROR"
            message = "A database error occurred"
            logger.error(
                f"SQLAlchemy error: {request_method} {request_path}",
                exc_info=True,
            )

        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            error_code = "INTERNAL_SERVER_ERROR"
            message = "An unexpected error occurred"
            logger.error(
                f"Unhandled exception: {request_method} {request_path} - "
                f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
                exc_info=True,
            )

        if self.debug:
            details = get_safe_error_details(exc, include_traceback=True)

        return build_error_response(scope, status_code, error_code, message, details)


def setup_error_handlers(app) -> None:
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Render domain errors with their own status and code."""
        if exc.status_code >= 500:
            logger.error(f"Application error: {request.method} {request.url.path} - {exc.code}")
        return build_error_response(
            request.scope, exc.status_code, exc.code, exc.message, exc.details
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions, e.g. unknown routes."""
        response = build_error_response(
            request.scope,
            exc.status_code,
            "HTTP_EXCEPTION",
            sanitize_error_message(exc.detail),
        )
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors as 400."""
        return build_error_response(
            request.scope,
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Request validation failed",
            format_validation_errors(exc),
        )
