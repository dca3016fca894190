"""
User schemas.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from teamtrack.models.user import UserRole
from teamtrack.schemas.common import UTCDateTime


class UserResponse(BaseModel):
    """Public user representation returned in API responses."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    avatar: str | None
    is_active: bool
    last_login_at: UTCDateTime | None
    created_at: UTCDateTime

    model_config = {"from_attributes": True}


class UserProfileUpdateRequest(BaseModel):
    """Request body for PATCH /users/{user_id}."""

    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    avatar: str | None = Field(default=None, max_length=500)


class UserRoleUpdateRequest(BaseModel):
    """Request body for PATCH /users/{user_id}/role."""

    role: UserRole


class UserStatisticsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: dict[str, int]
