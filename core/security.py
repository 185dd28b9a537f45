"""
Security utilities: password hashing and JWT session credentials.

Access and refresh tokens are signed with the same key but carry different
audiences and ``type`` claims, so one can never be accepted as the other.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from core.exceptions import InvalidTokenError

logger = logging.getLogger("security")

ACCESS_TOKEN_AUDIENCE = "jobboard-access"
REFRESH_TOKEN_AUDIENCE = "jobboard-refresh"


# ==================== Passwords ==================== #

def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a password against a bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Password hash has an unexpected format")
        return False


# ==================== Tokens ==================== #

@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


@dataclass(frozen=True)
class AccessClaims:
    """Identity carried by a verified access token."""

    user_id: int
    email: str
    role: str


class TokenService:
    """Issues and verifies access/refresh token pairs."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expires: timedelta = timedelta(days=7),
        refresh_token_expires: timedelta = timedelta(days=30),
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expires = access_token_expires
        self.refresh_token_expires = refresh_token_expires

    @classmethod
    def from_settings(cls, settings) -> "TokenService":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            access_token_expires=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_token_expires=timedelta(days=settings.refresh_token_expire_days),
        )

    def _encode(self, claims: Dict[str, Any], audience: str, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "aud": audience,
            "iat": now,
            "exp": now + expires_delta,
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def _decode(self, token: str, audience: str, token_type: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=audience,
                options={"require": ["exp", "iat", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        if payload.get("type") != token_type:
            raise InvalidTokenError("Invalid token type")
        if not isinstance(payload.get("user_id"), int):
            raise InvalidTokenError("Token missing user_id")
        return payload

    def create_access_token(
        self,
        user_id: int,
        email: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        return self._encode(
            {"user_id": user_id, "email": email, "role": role, "type": "access"},
            ACCESS_TOKEN_AUDIENCE,
            expires_delta or self.access_token_expires,
        )

    def create_refresh_token(
        self, user_id: int, expires_delta: Optional[timedelta] = None
    ) -> str:
        return self._encode(
            {"user_id": user_id, "type": "refresh"},
            REFRESH_TOKEN_AUDIENCE,
            expires_delta or self.refresh_token_expires,
        )

    def issue(self, user_id: int, email: str, role: str) -> TokenPair:
        """Create an access/refresh token pair for a user."""
        return TokenPair(
            access_token=self.create_access_token(user_id, email, role),
            refresh_token=self.create_refresh_token(user_id),
            token_type="Bearer",
            expires_in=int(self.access_token_expires.total_seconds()),
        )

    def verify_access(self, token: str) -> AccessClaims:
        """
        Verify an access token.

        Raises:
            InvalidTokenError: bad signature, expired, wrong audience or type
        """
        payload = self._decode(token, ACCESS_TOKEN_AUDIENCE, "access")
        email = payload.get("email")
        role = payload.get("role")
        if not email or not role:
            raise InvalidTokenError("Token missing identity claims")
        return AccessClaims(user_id=payload["user_id"], email=email, role=role)

    def verify_refresh(self, token: str) -> int:
        """
        Verify a refresh token and return its subject id.

        Raises:
            InvalidTokenError: bad signature, expired, wrong audience or type
        """
        payload = self._decode(token, REFRESH_TOKEN_AUDIENCE, "refresh")
        return payload["user_id"]


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None
