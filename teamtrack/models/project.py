"""
Project, ProjectMember and ProjectTaskCounter ORM models.
"""

from __future__ import annotations

import enum
import re
from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from sqlalchemy.orm.collections import attribute_keyed_dict

from teamtrack.models.base import Base, TimestampMixin, UUIDMixin, utc_now

if TYPE_CHECKING:
    from teamtrack.models.user import User

PROJECT_KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9]{1,9}$")

DEFAULT_PROJECT_SETTINGS: dict[str, Any] = {
    "default_task_priority": "medium",
    "allow_comments": True,
    "require_task_description": False,
}


class ProjectStatus(str, enum.Enum):
    active = "active"
    archived = "archived"
    completed = "completed"


class ProjectVisibility(str, enum.Enum):
    private = "private"
    public = "public"


class ProjectRole(str, enum.Enum):
    """Role a user holds inside one project. ``owner`` is never stored on a member row."""

    owner = "owner"
    admin = "admin"
    member = "member"
    viewer = "viewer"


def is_valid_project_key(key: str) -> bool:
    return PROJECT_KEY_PATTERN.fullmatch(key) is not None


class Project(Base, UUIDMixin, TimestampMixin):
    """A container of tasks with one owner and a keyed set of members."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    key: Mapped[str] = mapped_column(String(10), nullable=False, unique=True, index=True)
    owner_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus, name="project_status"),
        nullable=False,
        default=ProjectStatus.active,
        index=True,
    )
    visibility: Mapped[ProjectVisibility] = mapped_column(
        Enum(ProjectVisibility, name="project_visibility"),
        nullable=False,
        default=ProjectVisibility.private,
    )
    settings: Mapped[dict[str, Any]] = mapped_column(
        nullable=False,
        default=lambda: dict(DEFAULT_PROJECT_SETTINGS),
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    task_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_task_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    owner: Mapped[User] = relationship(
        "User", back_populates="owned_projects", foreign_keys=[owner_id]
    )
    members: Mapped[dict[UUID, ProjectMember]] = relationship(
        "ProjectMember",
        collection_class=attribute_keyed_dict("user_id"),
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    counter: Mapped[ProjectTaskCounter | None] = relationship(
        "ProjectTaskCounter",
        back_populates="project",
        cascade="all, delete-orphan",
        uselist=False,
    )

    @validates("key")
    def _validate_key(self, _: str, value: str) -> str:
        if not is_valid_project_key(value):
            raise ValueError(f"Invalid project key {value!r}")
        return value

    @property
    def completion_percentage(self) -> int:
        if self.task_count == 0:
            return 0
        return round(self.completed_task_count / self.task_count * 100)

    def __repr__(self) -> str:
        return f"<Project id={self.id} key={self.key!r} owner_id={self.owner_id}>"


class ProjectMember(Base):
    """A non-owner user's role within a project."""

    __tablename__ = "project_members"
    __table_args__ = (
        CheckConstraint("role <> 'owner'", name="ck_project_members_not_owner"),
    )

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role: Mapped[ProjectRole] = mapped_column(
        Enum(ProjectRole, name="project_role"),
        nullable=False,
        default=ProjectRole.member,
    )
    joined_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)

    # Relationships
    project: Mapped[Project] = relationship("Project", back_populates="members")

    def __repr__(self) -> str:
        return (
            f"<ProjectMember project_id={self.project_id} "
            f"user_id={self.user_id} role={self.role.value}>"
        )


class ProjectTaskCounter(Base):
    """Per-project sequence for task numbers. Only ever incremented."""

    __tablename__ = "project_task_counters"

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    last_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    project: Mapped[Project] = relationship("Project", back_populates="counter")

    def __repr__(self) -> str:
        return f"<ProjectTaskCounter project_id={self.project_id} last_number={self.last_number}>"
