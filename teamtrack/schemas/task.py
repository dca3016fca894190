"""
Task schemas.

Request/response models for task CRUD, board, bulk update and stats.
"""

from __future__ import annotations

from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from teamtrack.models.task import TaskPriority, TaskStatus, TaskType
from teamtrack.schemas.common import UTCDateTime
from teamtrack.schemas.label import LabelSummary

MAX_BULK_UPDATE = 50


# ---------------------------------------------------------------------------
# Task Create
# ---------------------------------------------------------------------------

class TaskCreateRequest(BaseModel):
    """Request body for POST /tasks."""

    project_id: UUID
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority | None = Field(
        default=None, description="Defaults to the project's default_task_priority"
    )
    type: TaskType = TaskType.task
    assignee_id: UUID | None = None
    label_ids: list[UUID] = Field(default_factory=list)
    due_date: date | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    parent_task_id: UUID | None = None
    order: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Task Update
# ---------------------------------------------------------------------------

class TaskUpdateRequest(BaseModel):
    """
    Request body for PATCH /tasks/{task_id}.

    Only fields present in the body are applied; an explicit null clears
    nullable fields such as assignee_id and due_date.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    type: TaskType | None = None
    assignee_id: UUID | None = None
    label_ids: list[UUID] | None = None
    due_date: date | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    parent_task_id: UUID | None = None
    order: int | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Bulk update
# ---------------------------------------------------------------------------

class BulkUpdateFields(BaseModel):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_id: UUID | None = None


class BulkUpdateRequest(BaseModel):
    """Request body for PATCH /tasks/bulk."""

    task_ids: list[UUID] = Field(min_length=1, max_length=MAX_BULK_UPDATE)
    updates: BulkUpdateFields


class BulkUpdateResponse(BaseModel):
    modified_count: int


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class TaskResponse(BaseModel):
    id: UUID
    project_id: UUID
    task_number: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    type: TaskType
    assignee_id: UUID | None
    reporter_id: UUID
    parent_task_id: UUID | None
    labels: list[LabelSummary] = Field(default_factory=list)
    due_date: date | None
    estimated_hours: float | None
    actual_hours: float
    order: int
    completed_at: UTCDateTime | None
    is_overdue: bool = False
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}


class BoardColumn(BaseModel):
    status: TaskStatus
    count: int
    tasks: list[TaskResponse]


class BoardResponse(BaseModel):
    project_id: UUID
    columns: list[BoardColumn]


class TaskStatusStats(BaseModel):
    status: TaskStatus
    count: int
    estimated_hours: float
    actual_hours: float


class TaskStatsResponse(BaseModel):
    project_id: UUID
    total: int
    overdue: int
    by_status: list[TaskStatusStats]


class TaskListQuery(BaseModel):
    project_id: UUID | None = None
    status: list[TaskStatus] | None = None
    priority: TaskPriority | None = None
    assignee_id: UUID | None = None
    type: TaskType | None = None
    search: str | None = Field(default=None, max_length=200)
    overdue: bool | None = None
    sort_by: Literal[
        "created_at", "updated_at", "due_date", "priority", "status", "title", "order"
    ] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
