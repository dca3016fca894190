"""
Comment schemas.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from teamtrack.schemas.common import UTCDateTime


class CommentCreateRequest(BaseModel):
    """Request body for POST /tasks/{task_id}/comments."""

    content: str = Field(min_length=1, max_length=2000)
    parent_comment_id: UUID | None = None
    mentions: list[UUID] = Field(default_factory=list, max_length=20)


class CommentUpdateRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1, max_length=32)


class ReactionResponse(BaseModel):
    user_id: UUID
    emoji: str

    model_config = {"from_attributes": True}


class CommentResponse(BaseModel):
    id: UUID
    task_id: UUID
    author_id: UUID
    parent_comment_id: UUID | None
    content: str
    mentions: list[UUID]
    reactions: list[ReactionResponse]
    is_edited: bool
    edited_at: UTCDateTime | None
    is_deleted: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}


class CommentThreadResponse(CommentResponse):
    """A top-level comment with its replies, oldest reply first."""

    replies: list[CommentResponse] = Field(default_factory=list)
