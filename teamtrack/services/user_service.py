"""
User administration business logic.

Profile updates, system role changes, deactivation and the guard that
keeps at least one active admin in the system.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.config import settings
from teamtrack.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from teamtrack.core.permissions import is_admin
from teamtrack.core.security import hash_password
from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.models.user import User, UserRole
from teamtrack.schemas.common import Page, PageParams
from teamtrack.schemas.user import (
    UserProfileUpdateRequest,
    UserResponse,
    UserStatisticsResponse,
)
from teamtrack.services.activity_service import ActivityService

logger = logging.getLogger(__name__)


class UserService:
    """Handles user listing and administration."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityService(db)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    async def list_users(
        self,
        params: PageParams,
        role: UserRole | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> Page[UserResponse]:
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
        if search:
            stmt = stmt.where(
                or_(
                    User.first_name.icontains(search, autoescape=True),
                    User.last_name.icontains(search, autoescape=True),
                    User.email.icontains(search, autoescape=True),
                )
            )

        total = (
            await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        ).scalar_one()
        result = await self.db.execute(
            stmt.order_by(User.created_at.desc()).offset(params.offset).limit(params.limit)
        )
        items = [UserResponse.model_validate(u) for u in result.scalars().all()]
        return Page[UserResponse].build(items, total, params)

    async def get_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")
        return user

    async def get_statistics(self) -> UserStatisticsResponse:
        rows = (
            await self.db.execute(
                select(User.role, User.is_active, func.count(User.id)).group_by(
                    User.role, User.is_active
                )
            )
        ).all()
        by_role = {role.value: 0 for role in UserRole}
        active = inactive = 0
        for role, active_flag, count in rows:
            if active_flag:
                active += count
                by_role[role.value] += count
            else:
                inactive += count
        return UserStatisticsResponse(
            total=active + inactive, active=active, inactive=inactive, by_role=by_role
        )

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def update_profile(
        self, user_id: UUID, data: UserProfileUpdateRequest, actor: User
    ) -> User:
        """Owners edit their own profile; admins may edit anyone's."""
        if actor.id != user_id and not is_admin(actor):
            raise ForbiddenError("You can only update your own profile")

        user = await self.get_user(user_id)
        before: dict[str, Any] = {}
        after: dict[str, Any] = {}
        for field in ("first_name", "last_name", "avatar"):
            if field not in data.model_fields_set:
                continue
            value = getattr(data, field)
            if field != "avatar" and value is None:
                continue
            if getattr(user, field) != value:
                before[field] = getattr(user, field)
                after[field] = value
                setattr(user, field, value)

        if after:
            await self.db.flush()
            await self.activity.record_best_effort(
                ActivityAction.user_update,
                actor_id=actor.id,
                entity_type=EntityType.user,
                entity_id=user.id,
                changes={"before": before, "after": after},
            )
        return user

    async def update_role(self, user_id: UUID, role: UserRole, actor: User) -> User:
        user = await self.get_user(user_id)
        if user.role == role:
            return user

        if user.role == UserRole.admin:
            await self._ensure_not_last_admin(user)

        old_role = user.role
        user.role = role
        await self.db.flush()
        logger.info("User %s role changed %s -> %s by %s", user.id, old_role.value, role.value, actor.id)

        await self.activity.record_best_effort(
            ActivityAction.user_role_change,
            actor_id=actor.id,
            entity_type=EntityType.user,
            entity_id=user.id,
            changes={"before": {"role": old_role.value}, "after": {"role": role.value}},
        )
        return user

    async def deactivate_user(self, user_id: UUID, actor: User) -> None:
        """Soft delete: the row stays, the account can no longer sign in."""
        user = await self.get_user(user_id)
        if not user.is_active:
            return

        if user.role == UserRole.admin:
            await self._ensure_not_last_admin(user)

        user.is_active = False
        user.current_refresh_token_hash = None
        await self.db.flush()

        await self.activity.record_best_effort(
            ActivityAction.user_delete,
            actor_id=actor.id,
            entity_type=EntityType.user,
            entity_id=user.id,
            changes={"before": {"is_active": True}, "after": {"is_active": False}},
        )

    async def _ensure_not_last_admin(self, user: User) -> None:
        """
        Reject demoting or deactivating the only active admin.

        Active admin rows are locked (SELECT ... FOR UPDATE) so two concurrent
        demotions serialize and the second one sees the first one's result.
        """
        if user.role != UserRole.admin or not user.is_active:
            return
        result = await self.db.execute(
            select(User.id)
            .where(User.role == UserRole.admin, User.is_active.is_(True))
            .with_for_update()
        )
        if len(result.scalars().all()) <= 1:
            raise ConflictError(
                "Cannot demote or deactivate the last active admin",
                code="LAST_ADMIN",
            )

    # -----------------------------------------------------------------------
    # Bootstrap
    # -----------------------------------------------------------------------

    async def ensure_initial_admin(self) -> User | None:
        """Create INITIAL_ADMIN_EMAIL as an admin if it does not exist yet."""
        if not settings.INITIAL_ADMIN_EMAIL or not settings.INITIAL_ADMIN_PASSWORD:
            return None

        email = settings.INITIAL_ADMIN_EMAIL.lower()
        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            return None

        user = User(
            email=email,
            password_hash=hash_password(settings.INITIAL_ADMIN_PASSWORD),
            first_name="Admin",
            last_name="User",
            role=UserRole.admin,
        )
        self.db.add(user)
        await self.db.flush()
        logger.info("Created initial admin %s", email)
        return user
