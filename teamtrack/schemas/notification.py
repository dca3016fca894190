"""
Pydantic schemas for notifications.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from teamtrack.models.notification import NotificationType
from teamtrack.schemas.common import UTCDateTime


class NotificationResponse(BaseModel):
    id: UUID
    recipient_id: UUID
    sender_id: UUID | None
    type: NotificationType
    title: str
    message: str
    entity_type: str | None
    entity_id: UUID | None
    project_id: UUID | None
    is_read: bool
    read_at: UTCDateTime | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_")
    created_at: UTCDateTime

    model_config = {"from_attributes": True}


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class DeleteAllResponse(BaseModel):
    deleted: int
