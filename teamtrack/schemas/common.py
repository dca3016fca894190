"""
Shared schemas: pagination envelope and compact embedded objects.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Generic, TypeVar
from uuid import UUID

from fastapi import Query
from pydantic import BaseModel, BeforeValidator, Field

from teamtrack.models.base import as_utc

T = TypeVar("T")

MAX_PAGE_SIZE = 100


def _ensure_utc(value: object) -> object:
    if isinstance(value, datetime):
        return as_utc(value)
    return value


# Backends without tz support hand back naive values; render everything as UTC
UTCDateTime = Annotated[datetime, BeforeValidator(_ensure_utc)]


class PageParams(BaseModel):
    """page >= 1, limit in [1, 100]."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
) -> PageParams:
    return PageParams(page=page, limit=limit)


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, items: list[T], total: int, params: PageParams) -> Page[T]:
        return cls(
            items=items,
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=math.ceil(total / params.limit),
        )


class UserSummary(BaseModel):
    """Compact user info embedded in other responses."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    avatar: str | None = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str
