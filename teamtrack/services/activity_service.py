"""
Activity (audit log) business logic.

Recording follows a two-step protocol: the caller flushes its primary
mutation first, then calls ``record_best_effort`` which appends the entry
inside its own savepoint. A failed append is logged and dropped; it never
fails or rolls back the mutation it describes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import ForbiddenError, NotFoundError
from teamtrack.core.permissions import ensure_can_view_project, is_admin
from teamtrack.models.activity import Activity, ActivityAction, EntityType
from teamtrack.models.comment import Comment
from teamtrack.models.label import Label
from teamtrack.models.project import Project
from teamtrack.models.task import Task
from teamtrack.models.user import User
from teamtrack.schemas.activity import ActivityResponse
from teamtrack.schemas.common import Page, PageParams

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Render enum, UUID and date values for the audit changes column."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Task action tags
# ---------------------------------------------------------------------------

TaskActionRule = tuple[Callable[[Task, Mapping[str, Any]], bool], ActivityAction]


def _assigned(task: Task, patch: Mapping[str, Any]) -> bool:
    return (
        "assignee_id" in patch
        and patch["assignee_id"] is not None
        and patch["assignee_id"] != task.assignee_id
    )


def _unassigned(task: Task, patch: Mapping[str, Any]) -> bool:
    return "assignee_id" in patch and patch["assignee_id"] is None and task.assignee_id is not None


def _status_changed(task: Task, patch: Mapping[str, Any]) -> bool:
    return patch.get("status") is not None and patch["status"] != task.status


def _priority_changed(task: Task, patch: Mapping[str, Any]) -> bool:
    return patch.get("priority") is not None and patch["priority"] != task.priority


def _current_label_ids(task: Task) -> set[UUID]:
    return {label.id for label in task.labels}


def _labels_added(task: Task, patch: Mapping[str, Any]) -> bool:
    return patch.get("label_ids") is not None and bool(
        set(patch["label_ids"]) - _current_label_ids(task)
    )


def _labels_removed(task: Task, patch: Mapping[str, Any]) -> bool:
    return patch.get("label_ids") is not None and bool(
        _current_label_ids(task) - set(patch["label_ids"])
    )


# Evaluated top-down; the first matching predicate wins.
TASK_ACTION_RULES: list[TaskActionRule] = [
    (_assigned, ActivityAction.task_assign),
    (_unassigned, ActivityAction.task_unassign),
    (_status_changed, ActivityAction.task_status_change),
    (_priority_changed, ActivityAction.task_priority_change),
    (_labels_added, ActivityAction.task_label_add),
    (_labels_removed, ActivityAction.task_label_remove),
]


def infer_task_action(task: Task, patch: Mapping[str, Any]) -> ActivityAction:
    """
    Pick the audit tag for an update from the incoming patch.

    ``task`` must still hold its pre-update values and ``patch`` must only
    contain the fields the caller explicitly sent.
    """
    for predicate, action in TASK_ACTION_RULES:
        if predicate(task, patch):
            return action
    return ActivityAction.task_update


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ActivityService:
    """Appends and queries audit entries."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def record(
        self,
        action: ActivityAction,
        actor_id: UUID,
        entity_type: EntityType,
        entity_id: UUID,
        project_id: UUID | None = None,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Activity:
        """Append one entry. Errors propagate to the caller."""
        activity = Activity(
            action=action,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            changes=changes,
            metadata_=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(activity)
        await self.db.flush()
        return activity

    async def record_best_effort(self, action: ActivityAction, **kwargs: Any) -> Activity | None:
        """
        Append one entry in a savepoint; on failure log and return None.

        Call only after the primary mutation has been flushed.
        """
        try:
            async with self.db.begin_nested():
                return await self.record(action, **kwargs)
        except SQLAlchemyError:
            logger.warning(
                "Audit append failed for %s on %s %s",
                action.value,
                kwargs.get("entity_type"),
                kwargs.get("entity_id"),
                exc_info=True,
            )
            return None

    # -----------------------------------------------------------------------
    # Queries (newest first)
    # -----------------------------------------------------------------------

    async def _page(self, stmt, params: PageParams) -> Page[ActivityResponse]:
        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()
        rows = (
            await self.db.execute(
                stmt.order_by(Activity.created_at.desc(), Activity.id.desc())
                .offset(params.offset)
                .limit(params.limit)
            )
        ).scalars().all()
        items = [ActivityResponse.model_validate(a) for a in rows]
        return Page[ActivityResponse].build(items, total, params)

    async def list_for_project(
        self, project_id: UUID, actor: User, params: PageParams
    ) -> Page[ActivityResponse]:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
        ensure_can_view_project(project, actor)
        stmt = select(Activity).where(Activity.project_id == project_id)
        return await self._page(stmt, params)

    async def list_for_actor(
        self, user_id: UUID, actor: User, params: PageParams
    ) -> Page[ActivityResponse]:
        if user_id != actor.id and not is_admin(actor):
            raise ForbiddenError("You can only view your own activity")
        stmt = select(Activity).where(Activity.actor_id == user_id)
        return await self._page(stmt, params)

    async def _entity_project_id(self, entity_type: EntityType, entity_id: UUID) -> UUID | None:
        """Project owning a project-scoped entity; None for global labels."""
        if entity_type == EntityType.project:
            return entity_id
        if entity_type == EntityType.task:
            task = await self.db.get(Task, entity_id)
            if task is None:
                raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
            return task.project_id
        if entity_type == EntityType.comment:
            comment = await self.db.get(Comment, entity_id)
            if comment is None:
                raise NotFoundError("Comment not found", code="COMMENT_NOT_FOUND")
            return await self._entity_project_id(EntityType.task, comment.task_id)
        label = await self.db.get(Label, entity_id)
        if label is None:
            raise NotFoundError("Label not found", code="LABEL_NOT_FOUND")
        return label.project_id

    async def list_for_entity(
        self, entity_type: EntityType, entity_id: UUID, actor: User, params: PageParams
    ) -> Page[ActivityResponse]:
        """
        History of one entity, gated like the entity itself.

        User history follows the same self-or-admin rule as ``list_for_actor``.
        Everything else resolves to its project, which must still exist and
        be visible to the actor. Deleted entities have no readable history
        here; their final entries remain reachable through the project feed.
        """
        if entity_type == EntityType.user:
            if entity_id != actor.id and not is_admin(actor):
                raise ForbiddenError("You can only view your own activity")
        else:
            project_id = await self._entity_project_id(entity_type, entity_id)
            if project_id is not None:
                project = await self.db.get(Project, project_id)
                if project is None:
                    raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
                ensure_can_view_project(project, actor)

        stmt = select(Activity).where(
            Activity.entity_type == entity_type,
            Activity.entity_id == entity_id,
        )
        return await self._page(stmt, params)

    async def recent_for_actor(self, user_id: UUID, limit: int) -> list[Activity]:
        result = await self.db.execute(
            select(Activity)
            .where(Activity.actor_id == user_id)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
