"""
Project business logic.

Handles project CRUD and membership. Every decision about who may do what
is delegated to teamtrack.core.permissions; this module loads data, applies
mutations and records the audit trail.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import BadRequestError, ConflictError, NotFoundError
from teamtrack.core.permissions import (
    ASSIGNABLE_MEMBER_ROLES,
    ensure_can_add_member,
    ensure_can_change_member_role,
    ensure_can_delete_project,
    ensure_can_remove_member,
    ensure_can_update_project,
    ensure_can_view_project,
    resolve_role,
)
from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.models.comment import Comment, CommentReaction
from teamtrack.models.label import Label, task_labels
from teamtrack.models.notification import NotificationType
from teamtrack.models.project import (
    Project,
    ProjectMember,
    ProjectRole,
    ProjectStatus,
    ProjectTaskCounter,
    ProjectVisibility,
    is_valid_project_key,
)
from teamtrack.models.task import Task
from teamtrack.models.user import User
from teamtrack.schemas.common import Page, PageParams
from teamtrack.schemas.project import (
    MemberAddRequest,
    ProjectCreateRequest,
    ProjectListQuery,
    ProjectResponse,
    ProjectStatisticsResponse,
    ProjectStatusStats,
    ProjectUpdateRequest,
)
from teamtrack.services.activity_service import ActivityService, to_jsonable
from teamtrack.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
    "name": Project.name,
    "key": Project.key,
}


async def get_project_or_404(db: AsyncSession, project_id: UUID) -> Project:
    """Load a project with its member map."""
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
    return project


def visible_projects_clause(user: User | None):
    """SQL filter matching projects the user owns, belongs to, or that are public."""
    if user is None:
        return Project.visibility == ProjectVisibility.public
    member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user.id)
    return or_(
        Project.visibility == ProjectVisibility.public,
        Project.owner_id == user.id,
        Project.id.in_(member_of),
    )


def to_project_response(project: Project, user: User | None) -> ProjectResponse:
    response = ProjectResponse.model_validate(project)
    response.my_role = resolve_role(project, user.id if user else None)
    return response


def _check_dates(start_date, end_date) -> None:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise BadRequestError("End date must be on or after the start date", code="INVALID_DATES")


class ProjectService:
    """Handles all project operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityService(db)
        self.notifications = NotificationService(db)

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create_project(self, data: ProjectCreateRequest, owner: User) -> ProjectResponse:
        key = data.key.strip().upper()
        if not is_valid_project_key(key):
            raise BadRequestError(
                "Project key must be 2-10 uppercase letters or digits, starting with a letter",
                code="INVALID_PROJECT_KEY",
            )
        _check_dates(data.start_date, data.end_date)

        existing = await self.db.execute(select(Project.id).where(Project.key == key))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(f"Project key {key} is already in use", code="KEY_TAKEN")

        project = Project(
            name=data.name,
            description=data.description,
            key=key,
            owner_id=owner.id,
            visibility=data.visibility,
            settings=data.settings.model_dump(mode="json"),
            start_date=data.start_date,
            end_date=data.end_date,
            members={},
        )
        project.counter = ProjectTaskCounter(last_number=0)
        self.db.add(project)
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.project_create,
            actor_id=owner.id,
            entity_type=EntityType.project,
            entity_id=project.id,
            project_id=project.id,
            metadata={"project_name": project.name, "project_key": project.key},
        )
        logger.info("Project %s created by %s", project.key, owner.id)
        return to_project_response(project, owner)

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def list_projects(
        self, actor: User | None, params: PageParams, query: ProjectListQuery
    ) -> Page[ProjectResponse]:
        stmt = select(Project).where(visible_projects_clause(actor))

        if query.status is not None:
            stmt = stmt.where(Project.status == query.status)
        if query.visibility is not None:
            stmt = stmt.where(Project.visibility == query.visibility)
        if query.search:
            stmt = stmt.where(
                or_(
                    Project.name.icontains(query.search, autoescape=True),
                    Project.description.icontains(query.search, autoescape=True),
                    Project.key.icontains(query.search, autoescape=True),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()

        column = _SORT_COLUMNS[query.sort_by]
        order = column.asc() if query.sort_order == "asc" else column.desc()
        result = await self.db.execute(
            stmt.order_by(order, Project.id).offset(params.offset).limit(params.limit)
        )
        items = [to_project_response(p, actor) for p in result.scalars().all()]
        return Page[ProjectResponse].build(items, total, params)

    async def get_project(self, project_id: UUID, actor: User | None) -> ProjectResponse:
        project = await get_project_or_404(self.db, project_id)
        ensure_can_view_project(project, actor)
        return to_project_response(project, actor)

    async def get_statistics(self) -> ProjectStatisticsResponse:
        rows = (
            await self.db.execute(
                select(
                    Project.status,
                    func.count(Project.id),
                    func.coalesce(func.sum(Project.task_count), 0),
                    func.coalesce(func.sum(Project.completed_task_count), 0),
                ).group_by(Project.status)
            )
        ).all()
        by_status = {row[0]: row for row in rows}
        stats = []
        for status in ProjectStatus:
            _, count, total_tasks, completed = by_status.get(status, (status, 0, 0, 0))
            stats.append(
                ProjectStatusStats(
                    status=status,
                    count=count,
                    total_tasks=int(total_tasks),
                    completed_tasks=int(completed),
                )
            )
        return ProjectStatisticsResponse(total=sum(s.count for s in stats), by_status=stats)

    # -----------------------------------------------------------------------
    # Update
    # -----------------------------------------------------------------------

    async def update_project(
        self, project_id: UUID, data: ProjectUpdateRequest, actor: User
    ) -> ProjectResponse:
        project = await get_project_or_404(self.db, project_id)
        ensure_can_update_project(project, actor)

        fields = data.model_fields_set
        start_date = data.start_date if "start_date" in fields else project.start_date
        end_date = data.end_date if "end_date" in fields else project.end_date
        _check_dates(start_date, end_date)

        before: dict[str, Any] = {}
        after: dict[str, Any] = {}

        def _set(field: str, value: Any) -> None:
            current = getattr(project, field)
            if current != value:
                before[field] = to_jsonable(current)
                after[field] = to_jsonable(value)
                setattr(project, field, value)

        for field in ("name", "status", "visibility"):
            if field in fields and getattr(data, field) is not None:
                _set(field, getattr(data, field))
        for field in ("description", "start_date", "end_date"):
            if field in fields:
                _set(field, getattr(data, field))
        if data.settings is not None:
            merged = dict(project.settings)
            merged.update(data.settings.model_dump(mode="json", exclude_none=True))
            _set("settings", merged)

        if not after:
            return to_project_response(project, actor)

        await self.db.flush()

        action = ActivityAction.project_update
        if after.get("status") == ProjectStatus.archived.value:
            action = ActivityAction.project_archive
        await self.activity.record_best_effort(
            action,
            actor_id=actor.id,
            entity_type=EntityType.project,
            entity_id=project.id,
            project_id=project.id,
            changes={"before": before, "after": after},
        )
        return to_project_response(project, actor)

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_project(self, project_id: UUID, actor: User) -> None:
        """
        Hard delete, owner only. Cascades to the project's tasks, their
        comments and label links, project-scoped labels, members and the
        task counter. Audit entries are kept.
        """
        project = await get_project_or_404(self.db, project_id)
        ensure_can_delete_project(project, actor)

        name, key = project.name, project.key
        task_ids = select(Task.id).where(Task.project_id == project_id)
        comment_ids = select(Comment.id).where(Comment.task_id.in_(task_ids))
        label_ids = select(Label.id).where(Label.project_id == project_id)

        for stmt in (
            delete(CommentReaction).where(CommentReaction.comment_id.in_(comment_ids)),
            delete(Comment).where(Comment.task_id.in_(task_ids)),
            delete(task_labels).where(
                or_(task_labels.c.task_id.in_(task_ids), task_labels.c.label_id.in_(label_ids))
            ),
            delete(Task).where(Task.project_id == project_id),
            delete(Label).where(Label.project_id == project_id),
        ):
            await self.db.execute(stmt.execution_options(synchronize_session=False))

        await self.db.delete(project)
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.project_delete,
            actor_id=actor.id,
            entity_type=EntityType.project,
            entity_id=project_id,
            project_id=project_id,
            metadata={"project_name": name, "project_key": key},
        )
        logger.info("Project %s deleted by %s", key, actor.id)

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def add_member(
        self, project_id: UUID, data: MemberAddRequest, actor: User
    ) -> ProjectResponse:
        project = await get_project_or_404(self.db, project_id)
        ensure_can_add_member(project, actor)
        if data.role not in ASSIGNABLE_MEMBER_ROLES:
            raise BadRequestError("Invalid member role", code="INVALID_ROLE")

        target = await self.db.get(User, data.user_id)
        if target is None or not target.is_active:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")
        if resolve_role(project, target.id) is not None:
            raise ConflictError("User is already a member of this project", code="ALREADY_MEMBER")

        project.members[target.id] = ProjectMember(user_id=target.id, role=data.role)
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.project_member_add,
            actor_id=actor.id,
            entity_type=EntityType.project,
            entity_id=project.id,
            project_id=project.id,
            changes={"after": {"user_id": str(target.id), "role": data.role.value}},
        )
        await self.notifications.notify(
            recipient_id=target.id,
            sender_id=actor.id,
            type=NotificationType.project_invited,
            title=f"Added to {project.name}",
            message=f"You were added to {project.key} as {data.role.value}",
            entity_type=EntityType.project.value,
            entity_id=project.id,
            project_id=project.id,
        )
        return to_project_response(project, actor)

    async def remove_member(self, project_id: UUID, user_id: UUID, actor: User) -> ProjectResponse:
        project = await get_project_or_404(self.db, project_id)
        ensure_can_remove_member(project, actor, user_id)

        member = project.members.get(user_id)
        if member is None:
            raise NotFoundError("User is not a member of this project", code="MEMBER_NOT_FOUND")

        old_role = member.role
        del project.members[user_id]
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.project_member_remove,
            actor_id=actor.id,
            entity_type=EntityType.project,
            entity_id=project.id,
            project_id=project.id,
            changes={"before": {"user_id": str(user_id), "role": old_role.value}},
        )
        await self.notifications.notify(
            recipient_id=user_id,
            sender_id=actor.id,
            type=NotificationType.project_removed,
            title=f"Removed from {project.name}",
            message=f"You were removed from {project.key}",
            entity_type=EntityType.project.value,
            entity_id=project.id,
            project_id=project.id,
        )
        return to_project_response(project, actor)

    async def update_member_role(
        self, project_id: UUID, user_id: UUID, role: ProjectRole, actor: User
    ) -> ProjectResponse:
        project = await get_project_or_404(self.db, project_id)
        ensure_can_change_member_role(project, actor, user_id)
        if role not in ASSIGNABLE_MEMBER_ROLES:
            raise BadRequestError("Invalid member role", code="INVALID_ROLE")

        member = project.members.get(user_id)
        if member is None:
            raise NotFoundError("User is not a member of this project", code="MEMBER_NOT_FOUND")
        if member.role == role:
            return to_project_response(project, actor)

        old_role = member.role
        member.role = role
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.project_member_role_change,
            actor_id=actor.id,
            entity_type=EntityType.project,
            entity_id=project.id,
            project_id=project.id,
            changes={
                "before": {"user_id": str(user_id), "role": old_role.value},
                "after": {"user_id": str(user_id), "role": role.value},
            },
        )
        await self.notifications.notify(
            recipient_id=user_id,
            sender_id=actor.id,
            type=NotificationType.project_role_changed,
            title=f"Role changed in {project.name}",
            message=f"Your role in {project.key} is now {role.value}",
            entity_type=EntityType.project.value,
            entity_id=project.id,
            project_id=project.id,
        )
        return to_project_response(project, actor)

