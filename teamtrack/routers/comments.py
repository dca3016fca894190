"""
Comment endpoints.

Threaded comments on tasks and emoji reactions.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user, get_optional_user
from teamtrack.models.user import User
from teamtrack.schemas.comment import (
    CommentCreateRequest,
    CommentResponse,
    CommentThreadResponse,
    CommentUpdateRequest,
    ReactionRequest,
)
from teamtrack.schemas.common import Page, PageParams, page_params
from teamtrack.services.comment_service import CommentService

router = APIRouter()


def get_comment_service(db: AsyncSession = Depends(get_db)) -> CommentService:
    return CommentService(db=db)


@router.get(
    "/task/{task_id}",
    response_model=Page[CommentThreadResponse],
    summary="List comments on a task",
)
async def list_comments(
    task_id: UUID,
    params: PageParams = Depends(page_params),
    current_user: User | None = Depends(get_optional_user),
    service: CommentService = Depends(get_comment_service),
) -> Page[CommentThreadResponse]:
    """Top-level comments newest first, each with its replies."""
    return await service.list_comments(task_id, current_user, params)


@router.post(
    "/task/{task_id}",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a task",
)
async def create_comment(
    task_id: UUID,
    data: CommentCreateRequest,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    return await service.create_comment(task_id, data, current_user)


@router.get(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Get a comment",
)
async def get_comment(
    comment_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    return await service.get_comment(comment_id, current_user)


@router.patch(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Edit a comment (author only)",
)
async def update_comment(
    comment_id: UUID,
    data: CommentUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    return await service.update_comment(comment_id, data, current_user)


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a comment (author only)",
)
async def delete_comment(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
) -> None:
    await service.delete_comment(comment_id, current_user)


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

@router.post(
    "/{comment_id}/reactions",
    response_model=CommentResponse,
    summary="React to a comment",
)
async def add_reaction(
    comment_id: UUID,
    data: ReactionRequest,
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    return await service.add_reaction(comment_id, data.emoji, current_user)


@router.delete(
    "/{comment_id}/reactions/{emoji}",
    response_model=CommentResponse,
    summary="Remove a reaction",
)
async def remove_reaction(
    comment_id: UUID,
    emoji: str = Path(min_length=1, max_length=32),
    current_user: User = Depends(get_current_user),
    service: CommentService = Depends(get_comment_service),
) -> CommentResponse:
    return await service.remove_reaction(comment_id, emoji, current_user)
