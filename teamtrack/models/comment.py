"""
Comment and CommentReaction ORM models.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamtrack.models.base import Base, JSONType, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from teamtrack.models.task import Task

DELETED_COMMENT_CONTENT = "[Deleted]"


class Comment(Base, UUIDMixin, TimestampMixin):
    """A comment on a task, optionally a reply to another comment."""

    __tablename__ = "comments"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    parent_comment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    mentions: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edited_at: Mapped[datetime | None] = mapped_column(nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # Relationships
    task: Mapped[Task] = relationship("Task", back_populates="comments")
    reactions: Mapped[list[CommentReaction]] = relationship(
        "CommentReaction",
        back_populates="comment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CommentReaction.created_at",
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id} task_id={self.task_id} author_id={self.author_id}>"


class CommentReaction(Base, UUIDMixin, TimestampMixin):
    """One emoji reaction by one user on one comment."""

    __tablename__ = "comment_reactions"
    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", "emoji", name="uq_comment_reactions_user_emoji"),
    )

    comment_id: Mapped[UUID] = mapped_column(
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)

    comment: Mapped[Comment] = relationship("Comment", back_populates="reactions")

    def __repr__(self) -> str:
        return f"<CommentReaction comment_id={self.comment_id} emoji={self.emoji!r}>"
