"""
Authentication business logic.

Handles user registration, login, token refresh, logout, password change.
All business logic lives here — routers only handle HTTP concerns.
"""

from __future__ import annotations

import logging
from uuid import UUID

import redis.asyncio as aioredis
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.config import settings
from teamtrack.core.dependencies import ClientInfo
from teamtrack.core.exceptions import BadRequestError, ConflictError, UnauthorizedError
from teamtrack.core.security import (
    blacklist_redis_key,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    hash_refresh_token,
    refresh_token_matches,
    verify_password,
)
from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.models.base import utc_now
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
)
from teamtrack.schemas.user import UserResponse
from teamtrack.services.activity_service import ActivityService

logger = logging.getLogger(__name__)


class AuthService:
    """Handles all authentication operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis
        self.activity = ActivityService(db)

    # -----------------------------------------------------------------------
    # Register
    # -----------------------------------------------------------------------

    async def register(self, data: RegisterRequest, client: ClientInfo) -> AuthResponse:
        """
        Register a new user with the ``member`` system role.

        - Validates email uniqueness
        - Hashes password
        - Creates user record
        - Issues JWT tokens
        """
        email = data.email.lower()
        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Email is already registered", code="EMAIL_TAKEN")

        user = User(
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=UserRole.member,
        )
        self.db.add(user)
        await self.db.flush()  # Get user.id without committing

        tokens = await self._issue_tokens(user)
        await self.activity.record_best_effort(
            ActivityAction.user_register,
            actor_id=user.id,
            entity_type=EntityType.user,
            entity_id=user.id,
            **client.as_audit_fields(),
        )
        logger.info("Registered user %s", user.id)
        return AuthResponse(**tokens.model_dump(), user=UserResponse.model_validate(user))

    # -----------------------------------------------------------------------
    # Login
    # -----------------------------------------------------------------------

    async def login(self, data: LoginRequest, client: ClientInfo) -> AuthResponse:
        """
        Authenticate user with email + password.

        Raises 401 for invalid credentials (never reveals which field is wrong,
        nor whether the account is deactivated).
        """
        result = await self.db.execute(select(User).where(User.email == data.email.lower()))
        user = result.scalar_one_or_none()

        if (
            user is None
            or not user.is_active
            or not verify_password(data.password, user.password_hash)
        ):
            raise UnauthorizedError("Invalid email or password", code="INVALID_CREDENTIALS")

        user.last_login_at = utc_now()
        tokens = await self._issue_tokens(user)
        await self.activity.record_best_effort(
            ActivityAction.user_login,
            actor_id=user.id,
            entity_type=EntityType.user,
            entity_id=user.id,
            **client.as_audit_fields(),
        )
        return AuthResponse(**tokens.model_dump(), user=UserResponse.model_validate(user))

    # -----------------------------------------------------------------------
    # Refresh
    # -----------------------------------------------------------------------

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """
        Exchange a valid refresh token for a new token pair.

        The presented token must match the digest stored on the user; the
        digest is then rotated so the old token stops working.
        """
        try:
            payload = decode_refresh_token(refresh_token)
            user_id = UUID(payload.get("sub", ""))
        except (JWTError, ValueError):
            raise UnauthorizedError("Refresh token is invalid or expired", code="INVALID_TOKEN")

        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive", code="USER_NOT_FOUND")

        if not refresh_token_matches(refresh_token, user.current_refresh_token_hash):
            raise UnauthorizedError("Refresh token has been revoked", code="TOKEN_REVOKED")

        return await self._issue_tokens(user)

    # -----------------------------------------------------------------------
    # Logout
    # -----------------------------------------------------------------------

    async def logout(self, user: User, access_token_jti: str, client: ClientInfo) -> None:
        """
        Logout user by:
        - Clearing the stored refresh token digest
        - Blacklisting the access token JTI for the rest of its lifetime
        """
        user.current_refresh_token_hash = None
        await self.db.flush()

        await self.redis.setex(
            blacklist_redis_key(access_token_jti),
            settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "1",
        )
        await self.activity.record_best_effort(
            ActivityAction.user_logout,
            actor_id=user.id,
            entity_type=EntityType.user,
            entity_id=user.id,
            **client.as_audit_fields(),
        )

    # -----------------------------------------------------------------------
    # Change password
    # -----------------------------------------------------------------------

    async def change_password(
        self, user: User, data: ChangePasswordRequest, client: ClientInfo
    ) -> None:
        """Verify the current password, store the new one, sign out other sessions."""
        if not verify_password(data.current_password, user.password_hash):
            raise BadRequestError("Current password is incorrect", code="INVALID_PASSWORD")

        user.password_hash = hash_password(data.new_password)
        user.current_refresh_token_hash = None
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.user_password_change,
            actor_id=user.id,
            entity_type=EntityType.user,
            entity_id=user.id,
            **client.as_audit_fields(),
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _issue_tokens(self, user: User) -> TokenResponse:
        """Create a token pair and remember the refresh token digest."""
        access_token = create_access_token(str(user.id), user.role.value)
        refresh_token = create_refresh_token(str(user.id))
        user.current_refresh_token_hash = hash_refresh_token(refresh_token)
        await self.db.flush()

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
