"""
Activity ORM model (append-only audit log).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from teamtrack.models.base import Base, UUIDMixin, utc_now


class ActivityAction(str, enum.Enum):
    user_login = "user.login"
    user_logout = "user.logout"
    user_register = "user.register"
    user_password_change = "user.password_change"
    user_update = "user.update"
    user_delete = "user.delete"
    user_role_change = "user.role_change"

    project_create = "project.create"
    project_update = "project.update"
    project_delete = "project.delete"
    project_archive = "project.archive"
    project_member_add = "project.member_add"
    project_member_remove = "project.member_remove"
    project_member_role_change = "project.member_role_change"

    task_create = "task.create"
    task_update = "task.update"
    task_delete = "task.delete"
    task_status_change = "task.status_change"
    task_assign = "task.assign"
    task_unassign = "task.unassign"
    task_priority_change = "task.priority_change"
    task_label_add = "task.label_add"
    task_label_remove = "task.label_remove"

    comment_create = "comment.create"
    comment_update = "comment.update"
    comment_delete = "comment.delete"
    comment_reaction_add = "comment.reaction_add"
    comment_reaction_remove = "comment.reaction_remove"

    label_create = "label.create"
    label_update = "label.update"
    label_delete = "label.delete"


class EntityType(str, enum.Enum):
    user = "user"
    project = "project"
    task = "task"
    comment = "comment"
    label = "label"


class Activity(Base, UUIDMixin):
    """
    One immutable audit entry.

    ``project_id`` and ``entity_id`` are plain indexed columns rather than
    foreign keys so entries outlive the rows they describe.
    """

    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_project_created", "project_id", "created_at"),
        Index("ix_activities_actor_created", "actor_id", "created_at"),
        Index("ix_activities_entity_created", "entity_type", "entity_id", "created_at"),
    )

    action: Mapped[ActivityAction] = mapped_column(
        Enum(
            ActivityAction,
            name="activity_action",
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )
    actor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    entity_type: Mapped[EntityType] = mapped_column(
        Enum(EntityType, name="entity_type"),
        nullable=False,
    )
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(nullable=True)
    changes: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return (
            f"<Activity id={self.id} action={self.action.value!r} "
            f"entity={self.entity_type.value}:{self.entity_id}>"
        )
