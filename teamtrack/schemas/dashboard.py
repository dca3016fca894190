"""
Dashboard schemas.
"""

from __future__ import annotations

import datetime
from uuid import UUID

from pydantic import BaseModel

from teamtrack.schemas.activity import ActivityResponse
from teamtrack.schemas.common import UserSummary
from teamtrack.schemas.task import TaskResponse


class ProjectCounts(BaseModel):
    owned: int
    member_of: int
    total: int


class OverviewResponse(BaseModel):
    """Per-user dashboard."""

    tasks_by_status: dict[str, int]
    total_assigned: int
    projects: ProjectCounts
    recent_activity: list[ActivityResponse]
    upcoming_deadlines: list[TaskResponse]
    overdue_count: int


class UserTotals(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: dict[str, int]


class DailyCount(BaseModel):
    date: datetime.date
    count: int


class AdminOverviewResponse(BaseModel):
    """System-wide dashboard."""

    users: UserTotals
    projects_by_status: dict[str, int]
    tasks_by_status: dict[str, int]
    registrations_trend: list[DailyCount]
    completions_trend: list[DailyCount]


class WorkloadEntry(BaseModel):
    """Open tasks for one assignee; ``user`` is None for the unassigned bucket."""

    user: UserSummary | None
    total_tasks: int
    total_estimated_hours: float
    priority_breakdown: dict[str, int]
    status_breakdown: dict[str, int]


class WorkloadResponse(BaseModel):
    project_id: UUID
    workload: list[WorkloadEntry]
