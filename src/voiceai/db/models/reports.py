"""Report and Notification ORM Models.

MonthlyReportModel is the durable trace of one generated report; the
unique constraint on (user_id, period_start, period_end) makes a second
insert for the same period fail at the database, which is the idempotency
guarantee of the monthly pipeline.
"""
from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from voiceai.db.base import Base, UUIDMixin, TimestampMixin, UUIDType


class NotificationType(str, Enum):
    """Dashboard notification categories."""

    DAILY_SUMMARY = "daily_summary"
    FAILED_CALLS = "failed_calls"
    ACTIVE_CALL = "active_call"
    PASSWORD_CHANGED = "password_changed"
    PAYMENT_UPDATED = "payment_updated"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_EXPIRING_SOON = "subscription_expiring_soon"
    TRIAL_EXPIRING = "trial_expiring"
    MONTHLY_REPORT_READY = "monthly_report_ready"


# =============================================================================
# Monthly Reports
# =============================================================================


class MonthlyReportModel(Base, UUIDMixin, TimestampMixin):
    """Generated monthly activity report."""

    __tablename__ = "monthly_reports"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_start: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        doc="First instant of the reported month (local time)",
    )
    period_end: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        doc="Last instant of the reported month (local time)",
    )
    subscription_renewal_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        comment="Snapshot taken when the report was generated",
    )
    metrics: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Serialized MonthlyReportMetrics (JSON)",
    )
    pdf_path: Mapped[str] = mapped_column(String(500), nullable=False)
    pdf_checksum: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="MD5 hex digest of the PDF bytes",
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.now,
    )
    emailed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        doc="Null until the report email was accepted by the provider",
    )
    notification_id: Mapped[UUID | None] = mapped_column(
        UUIDType(),
        ForeignKey("notifications.id", ondelete="SET NULL"),
        nullable=True,
    )
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Failed email delivery attempts",
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "period_start", "period_end", name="uq_monthly_reports_user_period"
        ),
        Index("ix_monthly_reports_pending_email", "emailed_at", "retry_count"),
    )

    @property
    def metrics_dict(self) -> dict[str, Any]:
        """Parsed metrics payload."""
        return json.loads(self.metrics) if self.metrics else {}

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "subscription_renewal_at": self.subscription_renewal_at.isoformat(),
            "metrics": self.metrics_dict,
            "pdf_checksum": self.pdf_checksum,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "emailed_at": self.emailed_at.isoformat() if self.emailed_at else None,
            "notification_id": str(self.notification_id) if self.notification_id else None,
            "retry_count": self.retry_count,
        }


# =============================================================================
# Notifications
# =============================================================================


class NotificationModel(Base, UUIDMixin, TimestampMixin):
    """In-app dashboard notification."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="See NotificationType",
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[str | None] = mapped_column(
        "metadata",
        Text,
        nullable=True,
        comment="JSON-encoded context, e.g. the report id",
    )
    is_read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary for API responses."""
        return {
            "id": str(self.id),
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "metadata": json.loads(self.metadata_json) if self.metadata_json else None,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
