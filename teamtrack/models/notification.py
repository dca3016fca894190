"""
ORM model for notifications table.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from teamtrack.models.base import Base, TimestampMixin, UUIDMixin


class NotificationType(str, enum.Enum):
    task_assigned = "task_assigned"
    task_unassigned = "task_unassigned"
    task_status_changed = "task_status_changed"
    task_commented = "task_commented"
    comment_mentioned = "comment_mentioned"
    comment_replied = "comment_replied"
    project_invited = "project_invited"
    project_role_changed = "project_role_changed"
    project_removed = "project_removed"


class Notification(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read", "created_at"),
    )

    recipient_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(nullable=True)
    project_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", nullable=True)

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type.value} recipient_id={self.recipient_id}>"
