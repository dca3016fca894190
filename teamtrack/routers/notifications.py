"""
Notification endpoints.

GET    /notifications               — list user notifications (paginated)
GET    /notifications/unread-count  — number of unread notifications
PATCH  /notifications/{id}/read     — mark single notification as read
POST   /notifications/mark-all-read — mark all notifications as read
DELETE /notifications/{id}          — delete one notification
DELETE /notifications               — delete all notifications
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teamtrack.core.database import get_db
from teamtrack.core.dependencies import get_current_user
from teamtrack.models.notification import NotificationType
from teamtrack.models.user import User
from teamtrack.schemas.common import Page, PageParams, page_params
from teamtrack.schemas.notification import (
    DeleteAllResponse,
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from teamtrack.services.notification_service import NotificationService

router = APIRouter()


def get_notification_service(
    db: AsyncSession = Depends(get_db),
) -> NotificationService:
    return NotificationService(db=db)


# ---------------------------------------------------------------------------
# GET /notifications
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=Page[NotificationResponse],
    summary="List notifications for the current user",
)
async def list_notifications(
    params: PageParams = Depends(page_params),
    is_read: bool | None = Query(default=None),
    type: NotificationType | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> Page[NotificationResponse]:
    return await service.list_notifications(current_user.id, params, is_read=is_read, type=type)


# ---------------------------------------------------------------------------
# GET /notifications/unread-count
# ---------------------------------------------------------------------------

@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Count unread notifications",
)
async def unread_count(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountResponse:
    return await service.unread_count(current_user.id)


# ---------------------------------------------------------------------------
# POST /notifications/mark-all-read
# ---------------------------------------------------------------------------

@router.post(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> MarkAllReadResponse:
    return await service.mark_all_read(current_user.id)


# ---------------------------------------------------------------------------
# PATCH /notifications/{notification_id}/read
# ---------------------------------------------------------------------------

@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
)
async def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationResponse:
    """Another user's notification id is reported as 404."""
    return await service.mark_read(notification_id, current_user.id)


# ---------------------------------------------------------------------------
# DELETE
# ---------------------------------------------------------------------------

@router.delete(
    "",
    response_model=DeleteAllResponse,
    summary="Delete all notifications",
)
async def delete_all(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> DeleteAllResponse:
    return await service.delete_all(current_user.id)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> None:
    await service.delete_notification(notification_id, current_user.id)
