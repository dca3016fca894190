"""
Label schemas.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from teamtrack.models.label import DEFAULT_LABEL_COLOR
from teamtrack.schemas.common import UTCDateTime

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class LabelSummary(BaseModel):
    """Compact label embedded in task responses."""

    id: UUID
    name: str
    color: str

    model_config = {"from_attributes": True}


class LabelCreateRequest(BaseModel):
    """Request body for POST /labels. Omit project_id for a global label."""

    name: str = Field(min_length=1, max_length=50)
    color: str = Field(default=DEFAULT_LABEL_COLOR, pattern=HEX_COLOR_PATTERN)
    description: str | None = Field(default=None, max_length=200)
    project_id: UUID | None = None


class LabelUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    description: str | None = Field(default=None, max_length=200)


class LabelResponse(BaseModel):
    id: UUID
    name: str
    color: str
    description: str | None
    project_id: UUID | None
    created_by_id: UUID
    is_archived: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}
