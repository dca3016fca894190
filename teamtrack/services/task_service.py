"""
Task business logic.

Handles task CRUD, numbering, completion tracking, board and bulk views.
Task numbers come from a per-project counter row incremented atomically,
so concurrent creations never share a number and deleted numbers are
never reused.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import BadRequestError, NotFoundError
from teamtrack.core.permissions import (
    ensure_can_view_project,
    ensure_project_role,
)
from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.models.base import utc_now
from teamtrack.models.comment import Comment, CommentReaction
from teamtrack.models.label import Label, task_labels
from teamtrack.models.notification import NotificationType
from teamtrack.models.project import Project, ProjectTaskCounter
from teamtrack.models.task import (
    TERMINAL_STATUSES,
    Task,
    TaskPriority,
    TaskStatus,
)
from teamtrack.models.user import User
from teamtrack.schemas.common import Page, PageParams
from teamtrack.schemas.task import (
    BoardColumn,
    BoardResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    TaskCreateRequest,
    TaskListQuery,
    TaskResponse,
    TaskStatsResponse,
    TaskStatusStats,
    TaskUpdateRequest,
)
from teamtrack.services.activity_service import ActivityService, infer_task_action, to_jsonable
from teamtrack.services.notification_service import NotificationService
from teamtrack.services.project_service import get_project_or_404, visible_projects_clause

logger = logging.getLogger(__name__)

PRIORITY_RANK = case(
    {
        TaskPriority.low: 0,
        TaskPriority.medium: 1,
        TaskPriority.high: 2,
        TaskPriority.urgent: 3,
    },
    value=Task.priority,
)

_SORT_COLUMNS = {
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "due_date": Task.due_date,
    "priority": PRIORITY_RANK,
    "status": Task.status,
    "title": Task.title,
    "order": Task.order,
}


def apply_status_transition(task: Task, new_status: TaskStatus, now: datetime) -> bool:
    """
    Move ``task`` to ``new_status`` and maintain ``completed_at``.

    Entering done stamps completed_at (unless already set), leaving done
    clears it, done -> done changes nothing. Returns True when the
    transition touched done, i.e. the project's completed count may change.
    """
    old_status = task.status
    if new_status == old_status:
        return False
    task.status = new_status
    if new_status == TaskStatus.done:
        if task.completed_at is None:
            task.completed_at = now
    elif old_status == TaskStatus.done:
        task.completed_at = None
    return TaskStatus.done in (old_status, new_status)


def to_task_response(task: Task, today: date | None = None) -> TaskResponse:
    response = TaskResponse.model_validate(task)
    response.is_overdue = task.overdue_on(today or utc_now().date())
    return response


class TaskService:
    """Handles all task operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityService(db)
        self.notifications = NotificationService(db)

    # -----------------------------------------------------------------------
    # Create Task
    # -----------------------------------------------------------------------

    async def create_task(self, data: TaskCreateRequest, reporter: User) -> TaskResponse:
        """
        Create a new task.

        The caller needs any role in the target project; the member system
        role is enforced by the route.
        The task number is allocated from the project's counter row with a
        single UPDATE ... RETURNING.
        """
        project = await get_project_or_404(self.db, data.project_id)
        ensure_project_role(project, reporter)

        project_settings = project.settings or {}
        if project_settings.get("require_task_description") and not (data.description or "").strip():
            raise BadRequestError("This project requires a task description", code="DESCRIPTION_REQUIRED")

        if data.assignee_id is not None:
            await self._get_active_user(data.assignee_id)
        if data.parent_task_id is not None:
            await self._get_parent(data.parent_task_id, project.id)
        labels = await self._get_labels(data.label_ids, project.id)

        sequence = await self._allocate_number(project)
        priority = data.priority or TaskPriority(
            project_settings.get("default_task_priority", TaskPriority.medium.value)
        )

        task = Task(
            project_id=project.id,
            sequence=sequence,
            task_number=f"{project.key}-{sequence}",
            title=data.title,
            description=data.description,
            status=TaskStatus.todo,
            priority=priority,
            type=data.type,
            assignee_id=data.assignee_id,
            reporter_id=reporter.id,
            parent_task_id=data.parent_task_id,
            due_date=data.due_date,
            estimated_hours=data.estimated_hours,
            actual_hours=0,
            order=data.order,
            labels=labels,
        )
        touched_done = apply_status_transition(task, data.status, utc_now())
        self.db.add(task)
        await self.db.flush()

        await self._adjust_task_count(project.id, 1)
        if touched_done:
            await self._recount_completed(project.id)

        await self.activity.record_best_effort(
            ActivityAction.task_create,
            actor_id=reporter.id,
            entity_type=EntityType.task,
            entity_id=task.id,
            project_id=project.id,
            metadata={"task_number": task.task_number, "task_title": task.title},
        )
        if task.assignee_id is not None:
            await self._notify_assignment(task, reporter, NotificationType.task_assigned)

        logger.debug("Task %s created by %s", task.task_number, reporter.id)
        return to_task_response(task)

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def get_task(self, task_id: UUID, actor: User | None) -> TaskResponse:
        task = await self._get_task(task_id)
        project = await get_project_or_404(self.db, task.project_id)
        self._ensure_task_visible(project, actor)
        return to_task_response(task)

    async def get_task_by_number(self, task_number: str, actor: User | None) -> TaskResponse:
        result = await self.db.execute(
            select(Task).where(Task.task_number == task_number.upper())
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        project = await get_project_or_404(self.db, task.project_id)
        self._ensure_task_visible(project, actor)
        return to_task_response(task)

    async def list_tasks(
        self, actor: User | None, params: PageParams, query: TaskListQuery
    ) -> Page[TaskResponse]:
        """Tasks in projects visible to the actor, filtered and paginated."""
        if query.project_id is not None:
            project = await get_project_or_404(self.db, query.project_id)
            ensure_can_view_project(project, actor)
            stmt = select(Task).where(Task.project_id == query.project_id)
        else:
            visible = select(Project.id).where(visible_projects_clause(actor))
            stmt = select(Task).where(Task.project_id.in_(visible))

        today = utc_now().date()
        if query.status:
            stmt = stmt.where(Task.status.in_(query.status))
        if query.priority is not None:
            stmt = stmt.where(Task.priority == query.priority)
        if query.assignee_id is not None:
            stmt = stmt.where(Task.assignee_id == query.assignee_id)
        if query.type is not None:
            stmt = stmt.where(Task.type == query.type)
        if query.search:
            stmt = stmt.where(
                or_(
                    Task.title.icontains(query.search, autoescape=True),
                    Task.description.icontains(query.search, autoescape=True),
                    Task.task_number.icontains(query.search, autoescape=True),
                )
            )
        if query.overdue is True:
            stmt = stmt.where(Task.due_date < today, Task.status.not_in(TERMINAL_STATUSES))
        elif query.overdue is False:
            stmt = stmt.where(
                or_(
                    Task.due_date.is_(None),
                    Task.due_date >= today,
                    Task.status.in_(TERMINAL_STATUSES),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()

        column = _SORT_COLUMNS[query.sort_by]
        order = column.asc() if query.sort_order == "asc" else column.desc()
        result = await self.db.execute(
            stmt.order_by(order, Task.id).offset(params.offset).limit(params.limit)
        )
        items = [to_task_response(t, today) for t in result.scalars().all()]
        return Page[TaskResponse].build(items, total, params)

    async def list_my_tasks(
        self, actor: User, params: PageParams, query: TaskListQuery
    ) -> Page[TaskResponse]:
        return await self.list_tasks(
            actor, params, query.model_copy(update={"assignee_id": actor.id})
        )

    async def get_board(self, project_id: UUID, actor: User | None) -> BoardResponse:
        """All tasks of a project grouped into one column per status."""
        project = await get_project_or_404(self.db, project_id)
        ensure_can_view_project(project, actor)

        result = await self.db.execute(
            select(Task)
            .where(Task.project_id == project_id)
            .order_by(Task.order, Task.created_at)
        )
        today = utc_now().date()
        grouped: dict[TaskStatus, list[TaskResponse]] = {s: [] for s in TaskStatus}
        for task in result.scalars().all():
            grouped[task.status].append(to_task_response(task, today))

        return BoardResponse(
            project_id=project_id,
            columns=[
                BoardColumn(status=s, count=len(tasks), tasks=tasks)
                for s, tasks in grouped.items()
            ],
        )

    async def get_project_task_stats(self, project_id: UUID, actor: User | None) -> TaskStatsResponse:
        project = await get_project_or_404(self.db, project_id)
        ensure_can_view_project(project, actor)

        rows = (
            await self.db.execute(
                select(
                    Task.status,
                    func.count(Task.id),
                    func.coalesce(func.sum(Task.estimated_hours), 0),
                    func.coalesce(func.sum(Task.actual_hours), 0),
                )
                .where(Task.project_id == project_id)
                .group_by(Task.status)
            )
        ).all()
        by_status = {row[0]: row for row in rows}

        today = utc_now().date()
        overdue = (
            await self.db.execute(
                select(func.count(Task.id)).where(
                    Task.project_id == project_id,
                    Task.due_date < today,
                    Task.status.not_in(TERMINAL_STATUSES),
                )
            )
        ).scalar_one()

        stats = []
        for status in TaskStatus:
            _, count, estimated, actual = by_status.get(status, (status, 0, 0, 0))
            stats.append(
                TaskStatusStats(
                    status=status,
                    count=count,
                    estimated_hours=float(estimated),
                    actual_hours=float(actual),
                )
            )
        return TaskStatsResponse(
            project_id=project_id,
            total=sum(s.count for s in stats),
            overdue=overdue,
            by_status=stats,
        )

    # -----------------------------------------------------------------------
    # Update Task
    # -----------------------------------------------------------------------

    async def update_task(
        self, task_id: UUID, data: TaskUpdateRequest, actor: User
    ) -> TaskResponse:
        """
        Partially update a task.

        Only fields present in the request are applied. The audit tag is
        chosen from the incoming patch before anything is changed.
        """
        task, _ = await self._apply_update(task_id, data, actor)
        return to_task_response(task)

    async def _apply_update(
        self, task_id: UUID, data: TaskUpdateRequest, actor: User
    ) -> tuple[Task, bool]:
        task = await self._get_task(task_id)
        project = await get_project_or_404(self.db, task.project_id)
        ensure_project_role(project, actor)

        patch = {field: getattr(data, field) for field in data.model_fields_set}
        action = infer_task_action(task, patch)
        old_assignee_id = task.assignee_id

        before: dict[str, Any] = {}
        after: dict[str, Any] = {}

        def _track(field: str, old: Any, new: Any) -> None:
            before[field] = to_jsonable(old)
            after[field] = to_jsonable(new)

        # Non-nullable fields: an explicit null is ignored
        for field in ("title", "priority", "type", "actual_hours", "order"):
            value = patch.get(field)
            if value is not None and value != getattr(task, field):
                _track(field, getattr(task, field), value)
                setattr(task, field, value)

        # Nullable fields: an explicit null clears the value
        for field in ("description", "due_date", "estimated_hours"):
            if field in patch and patch[field] != getattr(task, field):
                _track(field, getattr(task, field), patch[field])
                setattr(task, field, patch[field])

        if "assignee_id" in patch and patch["assignee_id"] != task.assignee_id:
            if patch["assignee_id"] is not None:
                await self._get_active_user(patch["assignee_id"])
            _track("assignee_id", task.assignee_id, patch["assignee_id"])
            task.assignee_id = patch["assignee_id"]

        if "parent_task_id" in patch and patch["parent_task_id"] != task.parent_task_id:
            if patch["parent_task_id"] is not None:
                await self._check_parent(task, patch["parent_task_id"])
            _track("parent_task_id", task.parent_task_id, patch["parent_task_id"])
            task.parent_task_id = patch["parent_task_id"]

        if patch.get("label_ids") is not None:
            labels = await self._get_labels(patch["label_ids"], project.id)
            old_ids = sorted(str(label.id) for label in task.labels)
            new_ids = sorted(str(label.id) for label in labels)
            if old_ids != new_ids:
                before["label_ids"], after["label_ids"] = old_ids, new_ids
                task.labels = labels

        touched_done = False
        if patch.get("status") is not None and patch["status"] != task.status:
            _track("status", task.status, patch["status"])
            touched_done = apply_status_transition(task, patch["status"], utc_now())

        if not after:
            return task, False

        await self.db.flush()
        if touched_done:
            await self._recount_completed(project.id)

        await self.activity.record_best_effort(
            action,
            actor_id=actor.id,
            entity_type=EntityType.task,
            entity_id=task.id,
            project_id=project.id,
            changes={"before": before, "after": after},
            metadata={"task_number": task.task_number, "task_title": task.title},
        )

        if "assignee_id" in after:
            if task.assignee_id is not None:
                await self._notify_assignment(task, actor, NotificationType.task_assigned)
            if old_assignee_id is not None:
                await self._notify_assignment(
                    task, actor, NotificationType.task_unassigned, recipient_id=old_assignee_id
                )
        if "status" in after and task.reporter_id != actor.id:
            await self.notifications.notify(
                recipient_id=task.reporter_id,
                sender_id=actor.id,
                type=NotificationType.task_status_changed,
                title=f"{task.task_number} moved to {task.status.value}",
                message=task.title,
                entity_type=EntityType.task.value,
                entity_id=task.id,
                project_id=task.project_id,
            )

        return task, True

    # -----------------------------------------------------------------------
    # Bulk update
    # -----------------------------------------------------------------------

    async def bulk_update(self, data: BulkUpdateRequest, actor: User) -> BulkUpdateResponse:
        """
        Apply the same status/priority/assignee change to up to 50 tasks.

        Each task goes through the single-update path so permission checks, completion
        tracking and audit entries are identical to single updates.
        """
        patch = TaskUpdateRequest.model_validate(
            data.updates.model_dump(exclude_unset=True)
        )
        modified = 0
        for task_id in dict.fromkeys(data.task_ids):
            _, changed = await self._apply_update(task_id, patch, actor)
            if changed:
                modified += 1
        return BulkUpdateResponse(modified_count=modified)

    # -----------------------------------------------------------------------
    # Delete Task
    # -----------------------------------------------------------------------

    async def delete_task(self, task_id: UUID, actor: User) -> None:
        """
        Delete a task together with its subtasks (recursively), their
        comments and label links.
        """
        task = await self._get_task(task_id)
        project = await get_project_or_404(self.db, task.project_id)
        ensure_project_role(project, actor)

        task_ids = await self._collect_subtree(task.id)
        had_done = (
            await self.db.execute(
                select(func.count(Task.id)).where(
                    Task.id.in_(task_ids), Task.status == TaskStatus.done
                )
            )
        ).scalar_one()

        comment_ids = select(Comment.id).where(Comment.task_id.in_(task_ids))
        for stmt in (
            delete(CommentReaction).where(CommentReaction.comment_id.in_(comment_ids)),
            delete(Comment).where(Comment.task_id.in_(task_ids)),
            delete(task_labels).where(task_labels.c.task_id.in_(task_ids)),
            delete(Task).where(Task.id.in_(task_ids)),
        ):
            await self.db.execute(stmt.execution_options(synchronize_session=False))
        self.db.expunge(task)

        await self._adjust_task_count(project.id, -len(task_ids))
        if had_done:
            await self._recount_completed(project.id)

        await self.activity.record_best_effort(
            ActivityAction.task_delete,
            actor_id=actor.id,
            entity_type=EntityType.task,
            entity_id=task_id,
            project_id=project.id,
            metadata={
                "task_number": task.task_number,
                "task_title": task.title,
                "deleted_subtasks": len(task_ids) - 1,
            },
        )

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_task(self, task_id: UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        return task

    @staticmethod
    def _ensure_task_visible(project: Project, actor: User | None) -> None:
        try:
            ensure_can_view_project(project, actor)
        except NotFoundError:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")

    async def _get_active_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise NotFoundError("Assignee not found", code="USER_NOT_FOUND")
        return user

    async def _get_parent(self, parent_id: UUID, project_id: UUID) -> Task:
        parent = await self.db.get(Task, parent_id)
        if parent is None:
            raise NotFoundError("Parent task not found", code="PARENT_NOT_FOUND")
        if parent.project_id != project_id:
            raise BadRequestError(
                "Parent task must be in the same project", code="PARENT_OTHER_PROJECT"
            )
        return parent

    async def _check_parent(self, task: Task, parent_id: UUID) -> None:
        """A task cannot become a subtask of itself or of its own descendants."""
        await self._get_parent(parent_id, task.project_id)
        if parent_id in await self._collect_subtree(task.id):
            raise BadRequestError("A task cannot be nested under itself", code="PARENT_CYCLE")

    async def _get_labels(self, label_ids: list[UUID], project_id: UUID) -> list[Label]:
        """Labels must be active and either global or owned by this project."""
        if not label_ids:
            return []
        unique_ids = list(dict.fromkeys(label_ids))
        result = await self.db.execute(
            select(Label).where(
                Label.id.in_(unique_ids),
                Label.is_archived.is_(False),
                or_(Label.project_id.is_(None), Label.project_id == project_id),
            )
        )
        labels = list(result.scalars().all())
        if len(labels) != len(unique_ids):
            raise BadRequestError(
                "Labels must be global or belong to the task's project", code="INVALID_LABELS"
            )
        return labels

    async def _collect_subtree(self, root_id: UUID) -> list[UUID]:
        """The task itself plus all its descendants, breadth first."""
        collected = [root_id]
        frontier = [root_id]
        while frontier:
            result = await self.db.execute(
                select(Task.id).where(Task.parent_task_id.in_(frontier))
            )
            frontier = [tid for tid in result.scalars().all() if tid not in collected]
            collected.extend(frontier)
        return collected

    async def _allocate_number(self, project: Project) -> int:
        result = await self.db.execute(
            update(ProjectTaskCounter)
            .where(ProjectTaskCounter.project_id == project.id)
            .values(last_number=ProjectTaskCounter.last_number + 1)
            .returning(ProjectTaskCounter.last_number)
            .execution_options(synchronize_session=False)
        )
        number = result.scalar_one_or_none()
        if number is not None:
            return number

        # Projects created before counters existed: seed from the highest sequence
        highest = (
            await self.db.execute(
                select(func.max(Task.sequence)).where(Task.project_id == project.id)
            )
        ).scalar_one()
        number = (highest or 0) + 1
        self.db.add(ProjectTaskCounter(project_id=project.id, last_number=number))
        await self.db.flush()
        return number

    async def _adjust_task_count(self, project_id: UUID, delta: int) -> None:
        await self.db.execute(
            update(Project)
            .where(Project.id == project_id)
            .values(task_count=Project.task_count + delta)
            .execution_options(synchronize_session=False)
        )

    async def _recount_completed(self, project_id: UUID) -> None:
        """Recompute the completed counter from the tasks themselves."""
        done_count = (
            select(func.count(Task.id))
            .where(Task.project_id == project_id, Task.status == TaskStatus.done)
            .scalar_subquery()
        )
        await self.db.execute(
            update(Project)
            .where(Project.id == project_id)
            .values(completed_task_count=done_count)
            .execution_options(synchronize_session=False)
        )

    async def _notify_assignment(
        self,
        task: Task,
        actor: User,
        type: NotificationType,
        recipient_id: UUID | None = None,
    ) -> None:
        recipient = recipient_id or task.assignee_id
        if recipient is None:
            return
        verb = "assigned to" if type == NotificationType.task_assigned else "unassigned from"
        await self.notifications.notify(
            recipient_id=recipient,
            sender_id=actor.id,
            type=type,
            title=f"You were {verb} {task.task_number}",
            message=task.title,
            entity_type=EntityType.task.value,
            entity_id=task.id,
            project_id=task.project_id,
        )
