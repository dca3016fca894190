"""
Task management endpoints.

CRUD operations for tasks, plus board, stats and bulk update.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user, get_optional_user, require_min_role
from teamtrack.models.task import TaskPriority, TaskStatus, TaskType
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.common import Page, PageParams, page_params
from teamtrack.schemas.task import (
    BoardResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    TaskCreateRequest,
    TaskListQuery,
    TaskResponse,
    TaskStatsResponse,
    TaskUpdateRequest,
)
from teamtrack.services.task_service import TaskService

router = APIRouter()


def get_task_service(db: AsyncSession = Depends(get_db)) -> TaskService:
    return TaskService(db=db)


def task_list_query(
    project_id: UUID | None = Query(default=None),
    status: list[TaskStatus] | None = Query(default=None),
    priority: TaskPriority | None = Query(default=None),
    assignee_id: UUID | None = Query(default=None),
    type: TaskType | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    overdue: bool | None = Query(default=None),
    sort_by: Literal[
        "created_at", "updated_at", "due_date", "priority", "status", "title", "order"
    ] = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
) -> TaskListQuery:
    return TaskListQuery(
        project_id=project_id,
        status=status,
        priority=priority,
        assignee_id=assignee_id,
        type=type,
        search=search,
        overdue=overdue,
        sort_by=sort_by,
        sort_order=sort_order,
    )


# ---------------------------------------------------------------------------
# List Tasks
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=Page[TaskResponse],
    summary="List tasks",
)
async def list_tasks(
    params: PageParams = Depends(page_params),
    query: TaskListQuery = Depends(task_list_query),
    current_user: User | None = Depends(get_optional_user),
    service: TaskService = Depends(get_task_service),
) -> Page[TaskResponse]:
    """Only tasks in projects visible to the caller are returned."""
    return await service.list_tasks(current_user, params, query)


@router.get(
    "/my-tasks",
    response_model=Page[TaskResponse],
    summary="List tasks assigned to the current user",
)
async def list_my_tasks(
    params: PageParams = Depends(page_params),
    query: TaskListQuery = Depends(task_list_query),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> Page[TaskResponse]:
    return await service.list_my_tasks(current_user, params, query)


@router.get(
    "/number/{task_number}",
    response_model=TaskResponse,
    summary="Get a task by its number (e.g. ABC-12)",
)
async def get_task_by_number(
    task_number: str,
    current_user: User | None = Depends(get_optional_user),
    service: TaskService = Depends(get_task_service),
) -> TaskResponse:
    return await service.get_task_by_number(task_number, current_user)


@router.get(
    "/board/{project_id}",
    response_model=BoardResponse,
    summary="Project board grouped by status",
)
async def get_board(
    project_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    service: TaskService = Depends(get_task_service),
) -> BoardResponse:
    return await service.get_board(project_id, current_user)


@router.get(
    "/stats/{project_id}",
    response_model=TaskStatsResponse,
    summary="Task counts and hours per status",
)
async def get_project_task_stats(
    project_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    service: TaskService = Depends(get_task_service),
) -> TaskStatsResponse:
    return await service.get_project_task_stats(project_id, current_user)


# ---------------------------------------------------------------------------
# Create / bulk
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new task",
)
async def create_task(
    data: TaskCreateRequest,
    current_user: User = Depends(require_min_role(UserRole.member)),
    service: TaskService = Depends(get_task_service),
) -> TaskResponse:
    """
    Create a task in a project the caller holds a role in.

    The task number ({KEY}-{n}) is assigned by the server.
    """
    return await service.create_task(data, current_user)


@router.patch(
    "/bulk",
    response_model=BulkUpdateResponse,
    summary="Update status, priority or assignee of up to 50 tasks",
)
async def bulk_update(
    data: BulkUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> BulkUpdateResponse:
    return await service.bulk_update(data, current_user)


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------

@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get task details",
)
async def get_task(
    task_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    service: TaskService = Depends(get_task_service),
) -> TaskResponse:
    return await service.get_task(task_id, current_user)


@router.patch(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update a task",
)
async def update_task(
    task_id: UUID,
    data: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskResponse:
    return await service.update_task(task_id, data, current_user)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task and its subtasks",
)
async def delete_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> None:
    await service.delete_task(task_id, current_user)
