"""
Label ORM model and the task_labels association table.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column

from teamtrack.models.base import Base, TimestampMixin, UUIDMixin

DEFAULT_LABEL_COLOR = "#6B7280"

task_labels = Table(
    "task_labels",
    Base.metadata,
    Column("task_id", ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)


class Label(Base, UUIDMixin, TimestampMixin):
    """A tag applied to tasks. ``project_id`` of None means a global label."""

    __tablename__ = "labels"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default=DEFAULT_LABEL_COLOR)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Label id={self.id} name={self.name!r} project_id={self.project_id}>"
