"""
Authentication middleware for resolving the caller's identity.

This middleware:
1. Extracts the bearer token from the Authorization header
2. Verifies it as an access token
3. Re-loads the user and requires the account to be active
4. Stores a ``CurrentUser`` in the request scope

It never rejects a request itself. A failure is recorded in the scope as
``auth_error`` and the route dependencies decide whether authentication was
mandatory (see ``api.dependencies``).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select

from core.exceptions import AuthenticationError, InvalidTokenError
from core.security import TokenService, extract_bearer_token
from database.models.users import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Normalized identity of the authenticated caller."""

    id: int
    email: str
    role: str
    first_name: str
    last_name: str

    @classmethod
    def from_model(cls, user: User) -> "CurrentUser":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role.value,
            first_name=user.first_name,
            last_name=user.last_name,
        )


class AuthenticationMiddleware:
    """
    Resolves the bearer token on every HTTP request.

    The database handle is read from ``app.state.db`` at request time, so the
    middleware works with whatever handle the application was built with.
    """

    def __init__(self, app: Callable, token_service: TokenService):
        self.app = app
        self.token_service = token_service

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope["user"] = None
        scope["auth_error"] = None

        auth_header = self._get_header(scope, b"authorization")
        if auth_header is not None:
            try:
                scope["user"] = await self._authenticate(scope, auth_header)
            except AuthenticationError as e:
                logger.info(
                    f"Authentication failed: {scope.get('method')} {scope.get('path')} - {e.message}"
                )
                scope["auth_error"] = e

        await self.app(scope, receive, send)

    @staticmethod
    def _get_header(scope: dict, name: bytes) -> Optional[str]:
        for key, value in scope.get("headers", []):
            if key.lower() == name:
                return value.decode("latin-1")
        return None

    async def _authenticate(self, scope: dict, auth_header: str) -> CurrentUser:
        """
        Verify the token and load the user it names.

        Raises:
            InvalidTokenError: malformed header or token failing verification
            AuthenticationError: user missing or inactive
        """
        token = extract_bearer_token(auth_header)
        if not token:
            raise InvalidTokenError("Malformed authorization header")

        claims = self.token_service.verify_access(token)

        db = scope["app"].state.db
        async with db.session() as session:
            result = await session.execute(select(User).where(User.id == claims.user_id))
            user = result.scalar_one_or_none()

        if user is None:
            raise AuthenticationError("User not found")
        if not user.is_active:
            raise AuthenticationError("Account is disabled")

        return CurrentUser.from_model(user)


def get_current_user(request) -> Optional[CurrentUser]:
    """Return the user resolved by the middleware, or None."""
    return request.scope.get("user")


def get_auth_error(request) -> Optional[AuthenticationError]:
    """Return the error recorded while resolving the bearer token, if any."""
    return request.scope.get("auth_error")
