"""
FastAPI dependency injection functions.

Provides current user, Redis connections, system role enforcement.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.config import settings
from teamtrack.core.database import get_db
from teamtrack.core.exceptions import ForbiddenError, UnauthorizedError
from teamtrack.core.permissions import ensure_min_role
from teamtrack.core.security import blacklist_redis_key, decode_access_token
from teamtrack.models.user import User, UserRole

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False so we can return custom 401)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """
    Return a shared async Redis client.

    Uses a module-level pool so connections are reused across requests.
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

async def _authenticate(
    token: str,
    db: AsyncSession,
    redis: aioredis.Redis,
) -> tuple[User, dict]:
    try:
        payload = decode_access_token(token)
        user_id = UUID(payload.get("sub", ""))
    except (JWTError, ValueError):
        raise UnauthorizedError("Token is invalid or expired", code="INVALID_TOKEN")

    jti: str = payload.get("jti", "")

    # Check blacklist
    if await redis.exists(blacklist_redis_key(jti)):
        raise UnauthorizedError("Token has been revoked", code="TOKEN_REVOKED")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise UnauthorizedError("User not found or inactive", code="USER_NOT_FOUND")

    return user, payload


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> dict:
    """Verified access token claims, for endpoints that need the jti (logout)."""
    if credentials is None:
        raise UnauthorizedError("Authorization header required", code="MISSING_TOKEN")
    _, payload = await _authenticate(credentials.credentials, db, redis)
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> User:
    """
    Validate Bearer JWT and return the authenticated User.

    Raises 401 if:
    - No token provided
    - Token is invalid or expired
    - JTI is blacklisted
    - User does not exist or is inactive
    """
    if credentials is None:
        raise UnauthorizedError("Authorization header required", code="MISSING_TOKEN")
    user, _ = await _authenticate(credentials.credentials, db, redis)
    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> User | None:
    """Like get_current_user, but anonymous requests resolve to None."""
    if credentials is None:
        return None
    user, _ = await _authenticate(credentials.credentials, db, redis)
    return user


# ---------------------------------------------------------------------------
# System role enforcement
# ---------------------------------------------------------------------------

def require_role(*roles: UserRole):
    """
    Dependency factory that enforces an exact system role.

    Usage:
        @router.get("/...")
        async def endpoint(
            current_user: User = Depends(require_role(UserRole.admin)),
        ): ...
    """
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise ForbiddenError(
                f"Required role: {[r.value for r in roles]}",
                code="INSUFFICIENT_ROLE",
            )
        return current_user

    return role_checker


def require_min_role(minimum: UserRole):
    """Dependency factory for the viewer < member < admin hierarchy."""
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        ensure_min_role(current_user, minimum)
        return current_user

    return role_checker


# ---------------------------------------------------------------------------
# Client context recorded on audit entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None

    def as_audit_fields(self) -> dict[str, str | None]:
        return {"ip_address": self.ip_address, "user_agent": self.user_agent}


def get_client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    return ClientInfo(ip_address=ip, user_agent=user_agent[:500] if user_agent else None)
