"""
Label endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user, get_optional_user, require_min_role
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.label import LabelCreateRequest, LabelResponse, LabelUpdateRequest
from teamtrack.services.label_service import LabelService

router = APIRouter()


def get_label_service(db: AsyncSession = Depends(get_db)) -> LabelService:
    return LabelService(db=db)


@router.get(
    "",
    response_model=list[LabelResponse],
    summary="List labels",
)
async def list_labels(
    project_id: UUID | None = Query(default=None),
    include_global: bool = Query(default=True),
    current_user: User | None = Depends(get_optional_user),
    service: LabelService = Depends(get_label_service),
) -> list[LabelResponse]:
    """Global labels, or a project's labels (plus global ones unless excluded)."""
    return await service.list_labels(current_user, project_id, include_global)


@router.post(
    "",
    response_model=LabelResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a label",
)
async def create_label(
    data: LabelCreateRequest,
    current_user: User = Depends(require_min_role(UserRole.member)),
    service: LabelService = Depends(get_label_service),
) -> LabelResponse:
    return await service.create_label(data, current_user)


@router.get(
    "/{label_id}",
    response_model=LabelResponse,
    summary="Get a label",
)
async def get_label(
    label_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    service: LabelService = Depends(get_label_service),
) -> LabelResponse:
    return await service.get_label(label_id, current_user)


@router.patch(
    "/{label_id}",
    response_model=LabelResponse,
    summary="Update a label",
)
async def update_label(
    label_id: UUID,
    data: LabelUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: LabelService = Depends(get_label_service),
) -> LabelResponse:
    return await service.update_label(label_id, data, current_user)


@router.delete(
    "/{label_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive a label",
)
async def delete_label(
    label_id: UUID,
    current_user: User = Depends(get_current_user),
    service: LabelService = Depends(get_label_service),
) -> None:
    await service.delete_label(label_id, current_user)
