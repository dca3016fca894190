"""
Business logic for notifications.
Handles creation and read-state management.
All queries scoped by recipient.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.exceptions import NotFoundError
from teamtrack.models.base import utc_now
from teamtrack.models.notification import Notification, NotificationType
from teamtrack.schemas.common import Page, PageParams
from teamtrack.schemas.notification import (
    DeleteAllResponse,
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Create (called from other services)
    # ------------------------------------------------------------------

    async def notify(
        self,
        recipient_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        sender_id: uuid.UUID | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        project_id: uuid.UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Notification | None:
        """
        Insert a notification row in a savepoint.

        Never notifies the sender about their own action. Failures are
        logged and swallowed so they cannot fail the triggering mutation.
        """
        if sender_id is not None and recipient_id == sender_id:
            return None

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            title=title[:200],
            message=message[:500],
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            metadata_=metadata,
            is_read=False,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(notification)
                await self._db.flush()
        except SQLAlchemyError:
            logger.warning(
                "Notification %s for user %s could not be stored",
                type.value,
                recipient_id,
                exc_info=True,
            )
            return None
        return notification

    # ------------------------------------------------------------------
    # GET /notifications
    # ------------------------------------------------------------------

    async def list_notifications(
        self,
        user_id: uuid.UUID,
        params: PageParams,
        is_read: bool | None = None,
        type: NotificationType | None = None,
    ) -> Page[NotificationResponse]:
        """List notifications for the current user, newest first."""
        base_stmt = select(Notification).where(Notification.recipient_id == user_id)

        if is_read is not None:
            base_stmt = base_stmt.where(Notification.is_read.is_(is_read))
        if type is not None:
            base_stmt = base_stmt.where(Notification.type == type)

        # Total count
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = (await self._db.execute(count_stmt)).scalar_one()

        result = await self._db.execute(
            base_stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(params.offset)
            .limit(params.limit)
        )
        items = [NotificationResponse.model_validate(n) for n in result.scalars().all()]
        return Page[NotificationResponse].build(items, total, params)

    # ------------------------------------------------------------------
    # GET /notifications/unread-count
    # ------------------------------------------------------------------

    async def unread_count(self, user_id: uuid.UUID) -> UnreadCountResponse:
        result = await self._db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return UnreadCountResponse(unread_count=result.scalar_one())

    # ------------------------------------------------------------------
    # PATCH /notifications/{id}/read
    # ------------------------------------------------------------------

    async def mark_read(
        self, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> NotificationResponse:
        notification = await self._get_owned(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utc_now()
            await self._db.flush()
        return NotificationResponse.model_validate(notification)

    # ------------------------------------------------------------------
    # POST /notifications/mark-all-read
    # ------------------------------------------------------------------

    async def mark_all_read(self, user_id: uuid.UUID) -> MarkAllReadResponse:
        result = await self._db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return MarkAllReadResponse(updated=result.rowcount or 0)

    # ------------------------------------------------------------------
    # DELETE /notifications/{id} and DELETE /notifications
    # ------------------------------------------------------------------

    async def delete_notification(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> None:
        notification = await self._get_owned(notification_id, user_id)
        await self._db.delete(notification)
        await self._db.flush()

    async def delete_all(self, user_id: uuid.UUID) -> DeleteAllResponse:
        result = await self._db.execute(
            delete(Notification)
            .where(Notification.recipient_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return DeleteAllResponse(deleted=result.rowcount or 0)

    async def _get_owned(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        result = await self._db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification not found", code="NOTIFICATION_NOT_FOUND")
        return notification
