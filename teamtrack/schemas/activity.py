"""
Activity (audit log) schemas.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from teamtrack.models.activity import ActivityAction, EntityType
from teamtrack.schemas.common import UTCDateTime


class ActivityResponse(BaseModel):
    id: UUID
    action: ActivityAction
    actor_id: UUID
    entity_type: EntityType
    entity_id: UUID
    project_id: UUID | None
    changes: dict[str, Any] | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="metadata_")
    ip_address: str | None
    user_agent: str | None
    created_at: UTCDateTime

    model_config = {"from_attributes": True}
