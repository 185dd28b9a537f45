"""Account service: registration, login, token refresh and profile lookup."""

from datetime import datetime, timezone
from typing import Any, Dict
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from api.schemas.auth import RegisterRequest
from core.exceptions import AuthenticationError, ConflictError, InvalidTokenError, NotFoundError
from core.security import TokenService, hash_password, verify_password
from core.utils.formatting import mask_email
from database.engine import Database
from database.models.companies import CompanyMember
from database.models.users import User, UserProfile, UserRole

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> Dict[str, Any]:
    """Convert user model to dictionary."""
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "profile_picture_url": user.profile_picture_url,
        "role": user.role.value,
        "is_active": user.is_active,
        "is_email_verified": user.is_email_verified,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }


def profile_to_dict(profile: UserProfile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "title": profile.title,
        "summary": profile.summary,
        "location": profile.location,
        "skills": list(profile.skills or []),
    }


def membership_to_dict(membership: CompanyMember) -> Dict[str, Any]:
    company = membership.company
    return {
        "id": membership.id,
        "role": membership.role.value,
        "title": membership.title,
        "company": {
            "id": company.id,
            "name": company.name,
            "slug": company.slug,
            "logo_url": company.logo_url,
            "is_verified": company.is_verified,
        },
    }


class AuthService:
    """Issues credentials for users stored in the database."""

    def __init__(self, database: Database, token_service: TokenService):
        self.db = database
        self.tokens = token_service

    def _issue_tokens(self, user: User) -> Dict[str, Any]:
        return self.tokens.issue(user.id, user.email, user.role.value).to_dict()

    async def register(self, data: RegisterRequest) -> Dict[str, Any]:
        """
        Register a new user account.

        Job seekers get an empty profile created alongside the account.

        Raises:
            ConflictError: If the email is already registered
        """
        email = data.email.lower()

        async with self.db.session() as session:
            result = await session.execute(select(User.id).where(User.email == email))
            if result.scalar_one_or_none() is not None:
                raise ConflictError("User with this email already exists")

            user = User(
                email=email,
                password_hash=hash_password(data.password),
                first_name=data.first_name.strip(),
                last_name=data.last_name.strip(),
                phone=data.phone,
                role=data.role,
                is_active=True,
                is_email_verified=False,
            )
            session.add(user)

            try:
                await session.flush()
                if user.role == UserRole.JOB_SEEKER:
                    session.add(UserProfile(user_id=user.id, skills=[]))
                await session.commit()
            except IntegrityError:
                # Lost a race with a concurrent registration
                await session.rollback()
                raise ConflictError("User with this email already exists")

            await session.refresh(user)

        logger.info(f"User {user.id} ({mask_email(email)}) registered as {user.role.value}")

        return {
            "user": user_to_dict(user),
            "tokens": self._issue_tokens(user),
        }

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Authenticate with email and password.

        Raises:
            AuthenticationError: Unknown email, wrong password or disabled account
        """
        email = email.lower()

        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()

            # Same message for unknown email and bad password
            if user is None or not verify_password(password, user.password_hash):
                logger.warning(f"Failed login attempt for {mask_email(email)}")
                raise AuthenticationError("Invalid email or password")

            if not user.is_active:
                logger.warning(f"Login attempt on disabled account {user.id}")
                raise AuthenticationError("Account is disabled")

            user.last_login_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(user)

        logger.info(f"User {user.id} logged in")

        return {
            "user": user_to_dict(user),
            "tokens": self._issue_tokens(user),
        }

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            AuthenticationError: If the token is invalid or the user is gone or disabled
        """
        try:
            user_id = self.tokens.verify_refresh(refresh_token)
        except InvalidTokenError as e:
            logger.info(f"Refresh rejected: {e.message}")
            raise AuthenticationError("Invalid or expired refresh token")

        async with self.db.session() as session:
            user = await session.get(User, user_id)

        if user is None or not user.is_active:
            raise AuthenticationError("Invalid or expired refresh token")

        return {"tokens": self._issue_tokens(user)}

    async def get_user_profile(self, user_id: int) -> Dict[str, Any]:
        """
        Load a user with their profile and active company memberships.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(User)
                .options(
                    selectinload(User.profile),
                    selectinload(User.company_memberships).selectinload(CompanyMember.company),
                )
                .where(User.id == user_id)
            )
            user = result.scalar_one_or_none()

        if user is None:
            raise NotFoundError("User not found")

        data = user_to_dict(user)
        data["profile"] = profile_to_dict(user.profile) if user.profile else None
        data["companies"] = [
            membership_to_dict(membership)
            for membership in user.company_memberships
            if membership.is_active
        ]
        return data
