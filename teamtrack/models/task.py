"""
Task ORM model.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamtrack.models.base import Base, TimestampMixin, UUIDMixin
from teamtrack.models.label import task_labels

if TYPE_CHECKING:
    from teamtrack.models.comment import Comment
    from teamtrack.models.label import Label
    from teamtrack.models.project import Project


class TaskStatus(str, enum.Enum):
    backlog = "backlog"
    todo = "todo"
    in_progress = "in_progress"
    in_review = "in_review"
    done = "done"
    cancelled = "cancelled"


TERMINAL_STATUSES = (TaskStatus.done, TaskStatus.cancelled)
OPEN_STATUSES = tuple(s for s in TaskStatus if s not in TERMINAL_STATUSES)


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class TaskType(str, enum.Enum):
    task = "task"
    bug = "bug"
    feature = "feature"
    improvement = "improvement"
    epic = "epic"
    story = "story"


class Task(Base, UUIDMixin, TimestampMixin):
    """Represents a work item within a project."""

    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("project_id", "sequence", name="uq_tasks_project_sequence"),
    )

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    task_number: Mapped[str] = mapped_column(String(24), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status"),
        nullable=False,
        default=TaskStatus.todo,
        index=True,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority, name="task_priority"),
        nullable=False,
        default=TaskPriority.medium,
        index=True,
    )
    type: Mapped[TaskType] = mapped_column(
        Enum(TaskType, name="task_type"),
        nullable=False,
        default=TaskType.task,
    )
    assignee_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    reporter_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    parent_task_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True, index=True)

    # Relationships
    project: Mapped[Project] = relationship("Project")
    labels: Mapped[list[Label]] = relationship(
        "Label", secondary=task_labels, lazy="selectin", order_by="Label.name"
    )
    comments: Mapped[list[Comment]] = relationship(
        "Comment", back_populates="task", cascade="all, delete-orphan", passive_deletes=True
    )

    def overdue_on(self, today: date) -> bool:
        return (
            self.due_date is not None
            and self.due_date < today
            and self.status not in TERMINAL_STATUSES
        )

    def __repr__(self) -> str:
        return f"<Task id={self.id} number={self.task_number!r} status={self.status.value}>"
