"""
User ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from teamtrack.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from teamtrack.models.project import Project


class UserRole(str, enum.Enum):
    """System-wide role. Ordered viewer < member < admin."""

    admin = "admin"
    member = "member"
    viewer = "viewer"


class User(Base, UUIDMixin, TimestampMixin):
    """Represents an account that can sign in."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.member,
        index=True,
    )
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    current_refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Relationships
    owned_projects: Mapped[list[Project]] = relationship(
        "Project", back_populates="owner", foreign_keys="Project.owner_id"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role.value}>"
