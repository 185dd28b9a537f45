"""FastAPI dependencies for dependency injection."""

from typing import Callable, Optional

from fastapi import Depends, Request

from api.services.auth import AuthService
from api.services.jobs import JobService
from core.exceptions import AuthenticationError, ForbiddenError
from core.middleware.authentication import CurrentUser, get_auth_error, get_current_user
from core.security import TokenService
from database.engine import Database
from database.models.users import UserRole


def get_db(request: Request) -> Database:
    """Database handle the application was started with."""
    return request.app.state.db


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_job_service(db: Database = Depends(get_db)) -> JobService:
    return JobService(db)


def get_auth_service(
    db: Database = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(db, token_service)


async def require_authenticated_user(request: Request) -> CurrentUser:
    """
    Require a valid bearer token.

    Re-raises the error recorded by the authentication middleware, so an
    expired token and a disabled account produce distinct messages.
    """
    error = get_auth_error(request)
    if error is not None:
        raise error

    user = get_current_user(request)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


async def get_optional_user(request: Request) -> Optional[CurrentUser]:
    """
    Get current user if authenticated, otherwise return None.
    Useful for endpoints that work both authenticated and unauthenticated.
    """
    if get_auth_error(request) is not None:
        return None
    return get_current_user(request)


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory restricting an endpoint to the given user roles."""
    allowed = {role.value for role in roles}

    async def dependency(
        current_user: CurrentUser = Depends(require_authenticated_user),
    ) -> CurrentUser:
        if current_user.role not in allowed:
            raise ForbiddenError(
                f"This action requires one of the roles: {', '.join(sorted(allowed))}"
            )
        return current_user

    return dependency


require_employer = require_roles(UserRole.EMPLOYER)
