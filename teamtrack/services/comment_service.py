"""
Comment business logic.

Comments hang off tasks and are readable by anyone who can see the task's
project. Writing, reacting included, needs a role in that project. Only
the author may edit or delete; deletion is soft so reply threads keep
their shape.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from teamtrack.core.permissions import (
    can_view_project,
    ensure_can_view_project,
    ensure_project_role,
)
from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.models.base import utc_now
from teamtrack.models.comment import DELETED_COMMENT_CONTENT, Comment, CommentReaction
from teamtrack.models.notification import NotificationType
from teamtrack.models.project import Project
from teamtrack.models.task import Task
from teamtrack.models.user import User
from teamtrack.schemas.comment import (
    CommentCreateRequest,
    CommentResponse,
    CommentThreadResponse,
    CommentUpdateRequest,
)
from teamtrack.schemas.common import Page, PageParams
from teamtrack.services.activity_service import ActivityService
from teamtrack.services.notification_service import NotificationService
from teamtrack.services.project_service import get_project_or_404

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityService(db)
        self.notifications = NotificationService(db)

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create_comment(
        self, task_id: UUID, data: CommentCreateRequest, author: User
    ) -> CommentResponse:
        """
        Add a comment to a task.

        Notifies the task's assignee and reporter, the parent comment's
        author for replies, and every mentioned user. Mentions of unknown,
        inactive or outside users are dropped. The author is never
        notified and each recipient is notified at most once.
        """
        task = await self._get_visible_task(task_id, author)
        project = await get_project_or_404(self.db, task.project_id)
        ensure_project_role(project, author)
        if not (project.settings or {}).get("allow_comments", True):
            raise BadRequestError("Comments are disabled for this project", code="COMMENTS_DISABLED")

        parent: Comment | None = None
        if data.parent_comment_id is not None:
            parent = await self.db.get(Comment, data.parent_comment_id)
            if parent is None or parent.is_deleted:
                raise NotFoundError("Parent comment not found", code="COMMENT_NOT_FOUND")
            if parent.task_id != task.id:
                raise BadRequestError(
                    "Parent comment belongs to another task", code="PARENT_OTHER_TASK"
                )

        mentions = await self._mentionable(project, data.mentions)
        comment = Comment(
            task_id=task.id,
            author_id=author.id,
            parent_comment_id=data.parent_comment_id,
            content=data.content,
            mentions=[str(user_id) for user_id in mentions],
            is_edited=False,
            is_deleted=False,
            reactions=[],
        )
        self.db.add(comment)
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.comment_create,
            actor_id=author.id,
            entity_type=EntityType.comment,
            entity_id=comment.id,
            project_id=task.project_id,
            metadata={"task_id": str(task.id), "task_number": task.task_number},
        )

        # Most specific reason wins when a user qualifies for several
        recipients: dict[UUID, NotificationType] = {}
        for user_id in mentions:
            recipients.setdefault(user_id, NotificationType.comment_mentioned)
        if parent is not None:
            recipients.setdefault(parent.author_id, NotificationType.comment_replied)
        for user_id in (task.assignee_id, task.reporter_id):
            if user_id is not None:
                recipients.setdefault(user_id, NotificationType.task_commented)

        for recipient_id, type in recipients.items():
            await self.notifications.notify(
                recipient_id=recipient_id,
                sender_id=author.id,
                type=type,
                title=_notification_title(type, author, task),
                message=data.content,
                entity_type=EntityType.task.value,
                entity_id=task.id,
                project_id=task.project_id,
                metadata={"comment_id": str(comment.id)},
            )

        return CommentResponse.model_validate(comment)

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def list_comments(
        self, task_id: UUID, actor: User | None, params: PageParams
    ) -> Page[CommentThreadResponse]:
        """Top-level comments newest first, each with its replies oldest first."""
        await self._get_visible_task(task_id, actor)

        stmt = select(Comment).where(
            Comment.task_id == task_id,
            Comment.parent_comment_id.is_(None),
            Comment.is_deleted.is_(False),
        )
        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()
        roots = (
            await self.db.execute(
                stmt.order_by(Comment.created_at.desc(), Comment.id)
                .offset(params.offset)
                .limit(params.limit)
            )
        ).scalars().all()

        replies: dict[UUID, list[CommentResponse]] = {c.id: [] for c in roots}
        if roots:
            result = await self.db.execute(
                select(Comment)
                .where(
                    Comment.parent_comment_id.in_(list(replies)),
                    Comment.is_deleted.is_(False),
                )
                .order_by(Comment.created_at, Comment.id)
            )
            for reply in result.scalars().all():
                replies[reply.parent_comment_id].append(CommentResponse.model_validate(reply))

        items = [
            CommentThreadResponse.model_validate(c).model_copy(update={"replies": replies[c.id]})
            for c in roots
        ]
        return Page[CommentThreadResponse].build(items, total, params)

    async def get_comment(self, comment_id: UUID, actor: User | None) -> CommentResponse:
        comment = await self._get_visible_comment(comment_id, actor)
        return CommentResponse.model_validate(comment)

    # -----------------------------------------------------------------------
    # Update / delete
    # -----------------------------------------------------------------------

    async def update_comment(
        self, comment_id: UUID, data: CommentUpdateRequest, actor: User
    ) -> CommentResponse:
        comment = await self._get_writable_comment(comment_id, actor)
        self._ensure_author(comment, actor)
        if comment.is_deleted:
            raise BadRequestError("Deleted comments cannot be edited", code="COMMENT_DELETED")

        if data.content != comment.content:
            before = comment.content
            comment.content = data.content
            comment.is_edited = True
            comment.edited_at = utc_now()
            await self.db.flush()

            task = await self.db.get(Task, comment.task_id)
            await self.activity.record_best_effort(
                ActivityAction.comment_update,
                actor_id=actor.id,
                entity_type=EntityType.comment,
                entity_id=comment.id,
                project_id=task.project_id if task else None,
                changes={"before": {"content": before}, "after": {"content": data.content}},
            )
        return CommentResponse.model_validate(comment)

    async def delete_comment(self, comment_id: UUID, actor: User) -> None:
        """Soft delete: the row stays, its content is replaced with a marker."""
        comment = await self._get_writable_comment(comment_id, actor)
        self._ensure_author(comment, actor)
        if comment.is_deleted:
            return

        comment.is_deleted = True
        comment.content = DELETED_COMMENT_CONTENT
        await self.db.flush()

        task = await self.db.get(Task, comment.task_id)
        await self.activity.record_best_effort(
            ActivityAction.comment_delete,
            actor_id=actor.id,
            entity_type=EntityType.comment,
            entity_id=comment.id,
            project_id=task.project_id if task else None,
        )

    # -----------------------------------------------------------------------
    # Reactions
    # -----------------------------------------------------------------------

    async def add_reaction(self, comment_id: UUID, emoji: str, actor: User) -> CommentResponse:
        """Idempotent: reacting twice with the same emoji is a no-op."""
        comment = await self._get_writable_comment(comment_id, actor)
        if comment.is_deleted:
            raise BadRequestError("Cannot react to a deleted comment", code="COMMENT_DELETED")

        if not any(r.user_id == actor.id and r.emoji == emoji for r in comment.reactions):
            comment.reactions.append(CommentReaction(user_id=actor.id, emoji=emoji))
            await self.db.flush()
            await self.activity.record_best_effort(
                ActivityAction.comment_reaction_add,
                actor_id=actor.id,
                entity_type=EntityType.comment,
                entity_id=comment.id,
                metadata={"emoji": emoji},
            )
        return CommentResponse.model_validate(comment)

    async def remove_reaction(self, comment_id: UUID, emoji: str, actor: User) -> CommentResponse:
        comment = await self._get_writable_comment(comment_id, actor)
        existing = [r for r in comment.reactions if r.user_id == actor.id and r.emoji == emoji]
        if existing:
            for reaction in existing:
                comment.reactions.remove(reaction)
            await self.db.flush()
            await self.activity.record_best_effort(
                ActivityAction.comment_reaction_remove,
                actor_id=actor.id,
                entity_type=EntityType.comment,
                entity_id=comment.id,
                metadata={"emoji": emoji},
            )
        return CommentResponse.model_validate(comment)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_visible_task(self, task_id: UUID, actor: User | None) -> Task:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        project = await get_project_or_404(self.db, task.project_id)
        try:
            ensure_can_view_project(project, actor)
        except NotFoundError:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        return task

    async def _get_visible_comment(self, comment_id: UUID, actor: User | None) -> Comment:
        comment = await self.db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found", code="COMMENT_NOT_FOUND")
        try:
            await self._get_visible_task(comment.task_id, actor)
        except NotFoundError:
            raise NotFoundError("Comment not found", code="COMMENT_NOT_FOUND")
        return comment

    async def _get_writable_comment(self, comment_id: UUID, actor: User) -> Comment:
        comment = await self._get_visible_comment(comment_id, actor)
        task = await self.db.get(Task, comment.task_id)
        project = await get_project_or_404(self.db, task.project_id)
        ensure_project_role(project, actor)
        return comment

    async def _mentionable(self, project: Project, user_ids: list[UUID]) -> list[UUID]:
        """Requested mentions narrowed to active users who can see the project."""
        requested = list(dict.fromkeys(user_ids))
        if not requested:
            return []
        result = await self.db.execute(
            select(User).where(User.id.in_(requested), User.is_active.is_(True))
        )
        allowed = {u.id for u in result.scalars().all() if can_view_project(project, u)}
        return [user_id for user_id in requested if user_id in allowed]

    @staticmethod
    def _ensure_author(comment: Comment, actor: User) -> None:
        if comment.author_id != actor.id:
            raise ForbiddenError("Only the author can modify this comment", code="NOT_AUTHOR")


def _notification_title(type: NotificationType, author: User, task: Task) -> str:
    if type == NotificationType.comment_mentioned:
        return f"{author.full_name} mentioned you on {task.task_number}"
    if type == NotificationType.comment_replied:
        return f"{author.full_name} replied to your comment on {task.task_number}"
    return f"{author.full_name} commented on {task.task_number}"
