"""
User administration endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user, require_role
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.common import Page, PageParams, page_params
from teamtrack.schemas.user import (
    UserProfileUpdateRequest,
    UserResponse,
    UserRoleUpdateRequest,
    UserStatisticsResponse,
)
from teamtrack.services.user_service import UserService

router = APIRouter()


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db=db)


@router.get(
    "",
    response_model=Page[UserResponse],
    summary="List users (admin)",
)
async def list_users(
    params: PageParams = Depends(page_params),
    role: UserRole | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    _: User = Depends(require_role(UserRole.admin)),
    service: UserService = Depends(get_user_service),
) -> Page[UserResponse]:
    return await service.list_users(params, role=role, is_active=is_active, search=search)


@router.get(
    "/statistics",
    response_model=UserStatisticsResponse,
    summary="User counts by role and status (admin)",
)
async def get_statistics(
    _: User = Depends(require_role(UserRole.admin)),
    service: UserService = Depends(get_user_service),
) -> UserStatisticsResponse:
    return await service.get_statistics()


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a user",
)
async def get_user(
    user_id: UUID,
    _: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await service.get_user(user_id))


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user's profile",
)
async def update_profile(
    user_id: UUID,
    data: UserProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Users edit their own profile; admins may edit anyone's."""
    user = await service.update_profile(user_id, data, current_user)
    return UserResponse.model_validate(user)


@router.patch(
    "/{user_id}/role",
    response_model=UserResponse,
    summary="Change a user's system role (admin)",
)
async def update_role(
    user_id: UUID,
    data: UserRoleUpdateRequest,
    current_user: User = Depends(require_role(UserRole.admin)),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Demoting the last active admin is rejected with 409."""
    user = await service.update_role(user_id, data.role, current_user)
    return UserResponse.model_validate(user)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate a user (admin)",
)
async def deactivate_user(
    user_id: UUID,
    current_user: User = Depends(require_role(UserRole.admin)),
    service: UserService = Depends(get_user_service),
) -> None:
    await service.deactivate_user(user_id, current_user)
