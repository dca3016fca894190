"""
Project schemas.

Request/response models for project CRUD and membership endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from teamtrack.models.base import as_utc
from teamtrack.models.project import ProjectRole, ProjectStatus, ProjectVisibility
from teamtrack.models.task import TaskPriority
from teamtrack.schemas.common import UTCDateTime


class ProjectSettings(BaseModel):
    default_task_priority: TaskPriority = TaskPriority.medium
    allow_comments: bool = True
    require_task_description: bool = False


class ProjectSettingsUpdate(BaseModel):
    default_task_priority: TaskPriority | None = None
    allow_comments: bool | None = None
    require_task_description: bool | None = None


# ---------------------------------------------------------------------------
# Create / Update
# ---------------------------------------------------------------------------

class ProjectCreateRequest(BaseModel):
    """Request body for POST /projects."""

    name: str = Field(min_length=1, max_length=100)
    key: str = Field(min_length=2, max_length=10)
    description: str | None = Field(default=None, max_length=1000)
    visibility: ProjectVisibility = ProjectVisibility.private
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    start_date: date | None = None
    end_date: date | None = None

    @field_validator("key")
    @classmethod
    def key_must_be_uppercase(cls, v: str) -> str:
        return v.strip().upper()


class ProjectUpdateRequest(BaseModel):
    """Request body for PATCH /projects/{project_id}. Key and owner are immutable."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    status: ProjectStatus | None = None
    visibility: ProjectVisibility | None = None
    settings: ProjectSettingsUpdate | None = None
    start_date: date | None = None
    end_date: date | None = None


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberAddRequest(BaseModel):
    """Request body for POST /projects/{project_id}/members."""

    user_id: UUID
    role: ProjectRole = ProjectRole.member

    @model_validator(mode="after")
    def role_is_assignable(self) -> MemberAddRequest:
        if self.role == ProjectRole.owner:
            raise ValueError("Members cannot be given the owner role")
        return self


class MemberRoleUpdateRequest(BaseModel):
    """Request body for PATCH /projects/{project_id}/members/{user_id}."""

    role: ProjectRole

    @model_validator(mode="after")
    def role_is_assignable(self) -> MemberRoleUpdateRequest:
        if self.role == ProjectRole.owner:
            raise ValueError("Members cannot be given the owner role")
        return self


class MemberResponse(BaseModel):
    user_id: UUID
    role: ProjectRole
    joined_at: UTCDateTime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ProjectResponse(BaseModel):
    id: UUID
    name: str
    key: str
    description: str | None
    owner_id: UUID
    status: ProjectStatus
    visibility: ProjectVisibility
    settings: ProjectSettings
    start_date: date | None
    end_date: date | None
    task_count: int
    completed_task_count: int
    completion_percentage: int
    members: list[MemberResponse]
    my_role: ProjectRole | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}

    @field_validator("members", mode="before")
    @classmethod
    def members_as_list(cls, v: object) -> object:
        if isinstance(v, dict):
            return sorted(v.values(), key=lambda m: as_utc(m.joined_at))
        return v


class ProjectListQuery(BaseModel):
    status: ProjectStatus | None = None
    visibility: ProjectVisibility | None = None
    search: str | None = Field(default=None, max_length=100)
    sort_by: Literal["created_at", "updated_at", "name", "key"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class ProjectStatusStats(BaseModel):
    status: ProjectStatus
    count: int
    total_tasks: int
    completed_tasks: int


class ProjectStatisticsResponse(BaseModel):
    total: int
    by_status: list[ProjectStatusStats]
