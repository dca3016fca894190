"""
Dashboard aggregations.

Read-only views computed on demand. Queries run one after another on the
request's session; an AsyncSession must not be used concurrently.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.config import settings
from teamtrack.core.permissions import ensure_can_view_project
from teamtrack.models.base import as_utc, utc_now
from teamtrack.models.project import Project, ProjectMember, ProjectStatus
from teamtrack.models.task import OPEN_STATUSES, TERMINAL_STATUSES, Task, TaskPriority, TaskStatus
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.activity import ActivityResponse
from teamtrack.schemas.common import UserSummary
from teamtrack.schemas.dashboard import (
    AdminOverviewResponse,
    DailyCount,
    OverviewResponse,
    ProjectCounts,
    UserTotals,
    WorkloadEntry,
    WorkloadResponse,
)
from teamtrack.services.activity_service import ActivityService
from teamtrack.services.project_service import get_project_or_404
from teamtrack.services.task_service import to_task_response

logger = logging.getLogger(__name__)


def bucket_by_day(timestamps: list[datetime], tz: ZoneInfo) -> list[DailyCount]:
    """Count timestamps per calendar day in ``tz``; empty days are omitted."""
    counts = Counter(as_utc(ts).astimezone(tz).date() for ts in timestamps)
    return [DailyCount(date=day, count=counts[day]) for day in sorted(counts)]


class DashboardService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityService(db)

    # -----------------------------------------------------------------------
    # Per-user overview
    # -----------------------------------------------------------------------

    async def overview(self, user: User) -> OverviewResponse:
        today = utc_now().date()

        rows = (
            await self.db.execute(
                select(Task.status, func.count(Task.id))
                .where(Task.assignee_id == user.id)
                .group_by(Task.status)
            )
        ).all()
        tasks_by_status = {status.value: 0 for status in TaskStatus}
        for status, count in rows:
            tasks_by_status[status.value] = count

        owned = (
            await self.db.execute(
                select(func.count(Project.id)).where(Project.owner_id == user.id)
            )
        ).scalar_one()
        member_of = (
            await self.db.execute(
                select(func.count()).select_from(ProjectMember).where(ProjectMember.user_id == user.id)
            )
        ).scalar_one()

        recent = await self.activity.recent_for_actor(user.id, settings.DASHBOARD_RECENT_ACTIVITY_LIMIT)

        window_end = today + timedelta(days=settings.DASHBOARD_UPCOMING_WINDOW_DAYS)
        upcoming = (
            await self.db.execute(
                select(Task)
                .where(
                    Task.assignee_id == user.id,
                    Task.status.not_in(TERMINAL_STATUSES),
                    Task.due_date >= today,
                    Task.due_date <= window_end,
                )
                .order_by(Task.due_date, Task.created_at)
                .limit(settings.DASHBOARD_UPCOMING_DEADLINES_LIMIT)
            )
        ).scalars().all()

        overdue = (
            await self.db.execute(
                select(func.count(Task.id)).where(
                    Task.assignee_id == user.id,
                    Task.status.not_in(TERMINAL_STATUSES),
                    Task.due_date < today,
                )
            )
        ).scalar_one()

        return OverviewResponse(
            tasks_by_status=tasks_by_status,
            total_assigned=sum(tasks_by_status.values()),
            projects=ProjectCounts(owned=owned, member_of=member_of, total=owned + member_of),
            recent_activity=[ActivityResponse.model_validate(a) for a in recent],
            upcoming_deadlines=[to_task_response(t, today) for t in upcoming],
            overdue_count=overdue,
        )

    # -----------------------------------------------------------------------
    # System-wide view (admins)
    # -----------------------------------------------------------------------

    async def admin_overview(self) -> AdminOverviewResponse:
        tz = ZoneInfo(settings.REPORTING_TIMEZONE)
        since = utc_now() - timedelta(days=settings.DASHBOARD_TREND_DAYS)

        user_rows = (
            await self.db.execute(
                select(User.role, User.is_active, func.count(User.id)).group_by(
                    User.role, User.is_active
                )
            )
        ).all()
        by_role = {role.value: 0 for role in UserRole}
        active = inactive = 0
        for role, is_active, count in user_rows:
            by_role[role.value] += count
            if is_active:
                active += count
            else:
                inactive += count

        projects_by_status = {status.value: 0 for status in ProjectStatus}
        for status, count in (
            await self.db.execute(
                select(Project.status, func.count(Project.id)).group_by(Project.status)
            )
        ).all():
            projects_by_status[status.value] = count

        tasks_by_status = {status.value: 0 for status in TaskStatus}
        for status, count in (
            await self.db.execute(select(Task.status, func.count(Task.id)).group_by(Task.status))
        ).all():
            tasks_by_status[status.value] = count

        registrations = (
            await self.db.execute(select(User.created_at).where(User.created_at >= since))
        ).scalars().all()
        completions = (
            await self.db.execute(
                select(Task.completed_at).where(
                    Task.completed_at.is_not(None), Task.completed_at >= since
                )
            )
        ).scalars().all()

        return AdminOverviewResponse(
            users=UserTotals(
                total=active + inactive, active=active, inactive=inactive, by_role=by_role
            ),
            projects_by_status=projects_by_status,
            tasks_by_status=tasks_by_status,
            registrations_trend=bucket_by_day(list(registrations), tz),
            completions_trend=bucket_by_day(list(completions), tz),
        )

    # -----------------------------------------------------------------------
    # Per-project workload
    # -----------------------------------------------------------------------

    async def project_workload(self, project_id: UUID, actor: User | None) -> WorkloadResponse:
        """
        Open tasks of a project grouped by assignee, busiest first.

        Done and cancelled tasks are excluded. Tasks with no assignee form
        one extra bucket whose ``user`` is None.
        """
        project = await get_project_or_404(self.db, project_id)
        ensure_can_view_project(project, actor)

        rows = (
            await self.db.execute(
                select(
                    Task.assignee_id,
                    Task.priority,
                    Task.status,
                    func.count(Task.id),
                    func.coalesce(func.sum(Task.estimated_hours), 0),
                )
                .where(Task.project_id == project_id, Task.status.in_(OPEN_STATUSES))
                .group_by(Task.assignee_id, Task.priority, Task.status)
            )
        ).all()

        totals: dict[UUID | None, int] = defaultdict(int)
        hours: dict[UUID | None, float] = defaultdict(float)
        priorities: dict[UUID | None, dict[str, int]] = {}
        statuses: dict[UUID | None, dict[str, int]] = {}
        for assignee_id, priority, status, count, estimated in rows:
            if assignee_id not in priorities:
                priorities[assignee_id] = {p.value: 0 for p in TaskPriority}
                statuses[assignee_id] = {s.value: 0 for s in OPEN_STATUSES}
            totals[assignee_id] += count
            hours[assignee_id] += float(estimated)
            priorities[assignee_id][priority.value] += count
            statuses[assignee_id][status.value] += count

        assignee_ids = [a for a in totals if a is not None]
        users: dict[UUID, User] = {}
        if assignee_ids:
            result = await self.db.execute(select(User).where(User.id.in_(assignee_ids)))
            users = {u.id: u for u in result.scalars().all()}

        entries = [
            WorkloadEntry(
                user=UserSummary.model_validate(users[a]) if a in users else None,
                total_tasks=totals[a],
                total_estimated_hours=hours[a],
                priority_breakdown=priorities[a],
                status_breakdown=statuses[a],
            )
            for a in totals
        ]
        entries.sort(key=lambda e: e.total_tasks, reverse=True)
        return WorkloadResponse(project_id=project_id, workload=entries)
