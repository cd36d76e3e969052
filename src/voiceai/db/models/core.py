"""Core ORM Models for VoiceAI.

Users own calls; calls are written by the upstream call-handling system
and are only read by the reporting pipeline.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import Mapped, mapped_column

from voiceai.db.base import Base, UUIDMixin, TimestampMixin, UUIDType


class CallStatus(str, Enum):
    """Lifecycle status of a call."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"
    NO_ANSWER = "no_answer"
    ACTIVE = "active"


class UserModel(Base, UUIDMixin, TimestampMixin):
    """Dashboard account.

    Only the subscription fields the report scheduler selects on are
    modelled here; billing and profile data live with the account service.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="user",
        comment="user or admin",
    )
    plan: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    subscription_status: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
        index=True,
        comment="active, trialing, past_due, canceled, expired",
    )
    subscription_current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        index=True,
        comment="Next renewal date of the subscription",
    )
    account_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "email": self.email,
            "role": self.role,
            "plan": self.plan,
            "subscription_status": self.subscription_status,
            "subscription_current_period_end": (
                self.subscription_current_period_end.isoformat()
                if self.subscription_current_period_end
                else None
            ),
        }


class CallModel(Base, UUIDMixin, TimestampMixin):
    """Call record ORM model.

    Stores one phone interaction handled by the voice receptionist:
    - timing (start, end, duration)
    - outcome (status, conversion, appointment)
    - AI analysis (mood, service type, booking confidence, keywords)
    """

    __tablename__ = "calls"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phone_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Caller phone number",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="completed, failed, canceled, no_answer, active",
    )

    # Timing
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    duration: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Call duration in seconds",
    )

    # Outcome
    event_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    conversion_result: Mapped[str | None] = mapped_column(String(50), nullable=True)
    call_successful: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    appointment_date: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        comment="Booked appointment, if the call converted",
    )
    appointment_day_of_week: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="0=Sunday .. 6=Saturday",
    )
    booking_delay_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_last_minute: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # AI analysis
    client_mood: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_returning_client: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    service_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    booking_confidence: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="0-100",
    )
    call_quality: Mapped[str | None] = mapped_column(String(30), nullable=True)
    upsell_accepted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    keywords: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    transcript: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Full call transcript",
    )
    summary: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="AI-generated call summary",
    )

    __table_args__ = (
        Index("ix_calls_user_created", "user_id", "created_at"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "phone_number": self.phone_number,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration": self.duration,
            "appointment_date": (
                self.appointment_date.isoformat() if self.appointment_date else None
            ),
            "conversion_result": self.conversion_result,
            "client_mood": self.client_mood,
            "service_type": self.service_type,
            "keywords": self.keywords or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
