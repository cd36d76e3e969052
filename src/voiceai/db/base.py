"""SQLAlchemy Base and Mixins for the VoiceAI database.

Provides:
- DeclarativeBase for all ORM models
- UUIDMixin for UUID primary keys
- TimestampMixin for created_at/updated_at
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, func, TypeDecorator
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UUIDType(TypeDecorator):
    """Platform-independent UUID type.

    Uses String(36) storage but handles UUID <-> str conversion.
    Compatible with SQLite and PostgreSQL.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        """Convert UUID to string for storage."""
        if value is None:
            return None
        if isinstance(value, UUID):
            return str(value)
        return str(UUID(str(value)))

    def process_result_value(self, value, dialect):
        """Convert string back to UUID on retrieval."""
        if value is None:
            return None
        if isinstance(value, UUID):
            return value
        return UUID(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
        UUID: UUIDType,
    }


class UUIDMixin:
    """Mixin providing UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        UUIDType(),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamps.

    Both default to the local wall clock so that period filters, which are
    expressed as naive local datetimes, compare like with like.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now,
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now,
        onupdate=datetime.now,
        server_default=func.now(),
        nullable=False,
    )
