"""
Authentication endpoints.

Register, login, logout, token refresh, password change, me.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import (
    ClientInfo,
    get_client_info,
    get_current_user,
    get_redis,
    get_token_payload,
)
from teamtrack.models.user import User
from teamtrack.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from teamtrack.schemas.common import MessageResponse
from teamtrack.schemas.user import UserResponse
from teamtrack.services.auth_service import AuthService

router = APIRouter()


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> AuthService:
    """Dependency that constructs AuthService."""
    return AuthService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    data: RegisterRequest,
    client: ClientInfo = Depends(get_client_info),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Create a new user account with the ``member`` system role.

    - Email must be unique (case-insensitive)
    - Password must be 8-128 chars with at least one letter and one digit
    - Returns JWT access + refresh tokens on success
    """
    return await service.register(data, client)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login with email and password",
)
async def login(
    data: LoginRequest,
    client: ClientInfo = Depends(get_client_info),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    return await service.login(data, client)


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
)
async def refresh(
    data: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """
    Exchange a valid refresh token for a new access + refresh token pair.

    Refresh tokens are rotated on every use.
    """
    return await service.refresh(data.refresh_token)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout and revoke tokens",
)
async def logout(
    payload: dict = Depends(get_token_payload),
    current_user: User = Depends(get_current_user),
    client: ClientInfo = Depends(get_client_info),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.logout(current_user, payload.get("jti", ""), client)
    return MessageResponse(message="Logged out successfully")


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------

@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change the current user's password",
)
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    client: ClientInfo = Depends(get_client_info),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Other sessions must sign in again: the stored refresh token is cleared."""
    await service.change_password(current_user, data, client)
    return MessageResponse(message="Password changed successfully")


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user profile",
)
async def me(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    return UserResponse.model_validate(current_user)
