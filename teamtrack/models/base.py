"""
Base model classes and mixins.

Provides Base declarative class, TimestampMixin and UUIDMixin.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        dict[str, Any]: JSONType,
    }


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamps.

    Values are generated in Python so they are available right after a
    flush without another round trip; the server default covers raw SQL
    inserts.
    """

    created_at: Mapped[datetime] = mapped_column(
        default=utc_now,
        server_default=func.now(),
        nullable=False,
        index=True,
        doc="Timestamp when the record was created",
    )

    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
        doc="Timestamp when the record was last updated",
    )


class UUIDMixin:
    """
    Mixin that adds UUID primary key.

    All models should use UUID as primary key for security and scalability.
    """

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        doc="Unique identifier for the record",
    )
