"""
Authentication endpoints.

Provides:
- Email/password registration and login
- Token refresh
- Logout
- Current user profile
"""

import logging

from fastapi import APIRouter, Depends, status

from api.dependencies import get_auth_service, require_authenticated_user
from api.schemas.auth import LoginRequest, RegisterRequest, TokenRefreshRequest
from api.schemas.common import MessageResponse
from api.services.auth import AuthService
from core.middleware.authentication import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user account.

    Returns the created user and a fresh token pair.
    """
    result = await auth_service.register(data)
    return {"message": "User registered successfully", **result}


@router.post("/login")
async def login(
    data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Login with email and password."""
    result = await auth_service.login(data.email, data.password)
    return {"message": "Login successful", **result}


@router.post("/refresh")
async def refresh_token(
    data: TokenRefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new token pair."""
    result = await auth_service.refresh(data.refresh_token)
    return {"message": "Token refreshed successfully", **result}


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUser = Depends(require_authenticated_user)):
    """
    Logout the current user.

    Tokens are stateless; the client discards them.
    """
    logger.info(f"User {current_user.id} logged out")
    return {"message": "Logout successful"}


@router.get("/me")
async def get_me(
    current_user: CurrentUser = Depends(require_authenticated_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Get the authenticated user with profile and companies."""
    user = await auth_service.get_user_profile(current_user.id)
    return {"user": user}
