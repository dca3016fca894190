"""
Project management endpoints.

CRUD operations for projects and their member lists.
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import (
    get_current_user,
    get_optional_user,
    require_min_role,
    require_role,
)
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.common import Page, PageParams, page_params
from teamtrack.schemas.project import (
    MemberAddRequest,
    MemberRoleUpdateRequest,
    ProjectCreateRequest,
    ProjectListQuery,
    ProjectResponse,
    ProjectStatisticsResponse,
    ProjectUpdateRequest,
)
from teamtrack.services.project_service import ProjectService

router = APIRouter()


def get_project_service(db: AsyncSession = Depends(get_db)) -> ProjectService:
    return ProjectService(db=db)


@router.get(
    "",
    response_model=Page[ProjectResponse],
    summary="List projects visible to the caller",
)
async def list_projects(
    params: PageParams = Depends(page_params),
    query: ProjectListQuery = Depends(),
    current_user: User | None = Depends(get_optional_user),
    service: ProjectService = Depends(get_project_service),
) -> Page[ProjectResponse]:
    """Public projects plus the ones the caller owns or belongs to."""
    return await service.list_projects(current_user, params, query)


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new project",
)
async def create_project(
    data: ProjectCreateRequest,
    current_user: User = Depends(require_min_role(UserRole.member)),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.create_project(data, current_user)


@router.get(
    "/statistics",
    response_model=ProjectStatisticsResponse,
    summary="Project counts by status (admin)",
)
async def get_statistics(
    _: User = Depends(require_role(UserRole.admin)),
    service: ProjectService = Depends(get_project_service),
) -> ProjectStatisticsResponse:
    return await service.get_statistics()


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get project details",
)
async def get_project(
    project_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.get_project(project_id, current_user)


@router.patch(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Update a project",
)
async def update_project(
    project_id: UUID,
    data: ProjectUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.update_project(project_id, data, current_user)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project",
)
async def delete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> None:
    """Owner only. Deletes the project's tasks, comments and labels too."""
    await service.delete_project(project_id, current_user)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.post(
    "/{project_id}/members",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a project member",
)
async def add_member(
    project_id: UUID,
    data: MemberAddRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.add_member(project_id, data, current_user)


@router.patch(
    "/{project_id}/members/{user_id}",
    response_model=ProjectResponse,
    summary="Change a member's project role",
)
async def update_member_role(
    project_id: UUID,
    user_id: UUID,
    data: MemberRoleUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.update_member_role(project_id, user_id, data.role, current_user)


@router.delete(
    "/{project_id}/members/{user_id}",
    response_model=ProjectResponse,
    summary="Remove a project member",
)
async def remove_member(
    project_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    """Owners and project admins remove anyone but the owner; members may leave."""
    return await service.remove_member(project_id, user_id, current_user)
