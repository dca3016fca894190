"""
Audit trail endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user
from teamtrack.models.activity import EntityType
from teamtrack.models.user import User
from teamtrack.schemas.activity import ActivityResponse
from teamtrack.schemas.common import Page, PageParams, page_params
from teamtrack.services.activity_service import ActivityService

router = APIRouter()


def get_activity_service(db: AsyncSession = Depends(get_db)) -> ActivityService:
    return ActivityService(db=db)


@router.get(
    "/me",
    response_model=Page[ActivityResponse],
    summary="My recent activity",
)
async def list_mine(
    params: PageParams = Depends(page_params),
    current_user: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> Page[ActivityResponse]:
    return await service.list_for_actor(current_user.id, current_user, params)


@router.get(
    "/project/{project_id}",
    response_model=Page[ActivityResponse],
    summary="Activity within a project",
)
async def list_for_project(
    project_id: UUID,
    params: PageParams = Depends(page_params),
    current_user: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> Page[ActivityResponse]:
    return await service.list_for_project(project_id, current_user, params)


@router.get(
    "/user/{user_id}",
    response_model=Page[ActivityResponse],
    summary="Activity performed by a user",
)
async def list_for_user(
    user_id: UUID,
    params: PageParams = Depends(page_params),
    current_user: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> Page[ActivityResponse]:
    """Users see their own history; admins see anyone's."""
    return await service.list_for_actor(user_id, current_user, params)


@router.get(
    "/entity/{entity_type}/{entity_id}",
    response_model=Page[ActivityResponse],
    summary="History of one entity",
)
async def list_for_entity(
    entity_type: EntityType,
    entity_id: UUID,
    params: PageParams = Depends(page_params),
    current_user: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> Page[ActivityResponse]:
    return await service.list_for_entity(entity_type, entity_id, current_user, params)
