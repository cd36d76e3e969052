"""Monthly Report and Notification Repositories for VoiceAI."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from voiceai.db.models.reports import (
    MonthlyReportModel,
    NotificationModel,
    NotificationType,
)
from voiceai.db.repositories.base import BaseRepository, as_uuid


class MonthlyReportRepository(BaseRepository[MonthlyReportModel]):
    """Repository for generated monthly reports."""

    def __init__(self, session: AsyncSession):
        super().__init__(MonthlyReportModel, session)

    async def list_for_user(self, user_id: UUID | str) -> Sequence[MonthlyReportModel]:
        """Get a user's reports, most recent period first."""
        stmt = (
            select(self._model)
            .where(self._model.user_id == as_uuid(user_id))
            .order_by(self._model.period_start.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def get_for_user(
        self,
        report_id: UUID | str,
        user_id: UUID | str,
    ) -> MonthlyReportModel | None:
        """Get a report only if it belongs to the given user."""
        stmt = select(self._model).where(
            and_(
                self._model.id == as_uuid(report_id),
                self._model.user_id == as_uuid(user_id),
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_period(
        self,
        user_id: UUID | str,
        period_start: datetime,
        period_end: datetime,
    ) -> MonthlyReportModel | None:
        """Get the report for an exact (user, period) tuple, if any."""
        stmt = select(self._model).where(
            and_(
                self._model.user_id == as_uuid(user_id),
                self._model.period_start == period_start,
                self._model.period_end == period_end,
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_report(
        self,
        *,
        user_id: UUID | str,
        period_start: datetime,
        period_end: datetime,
        subscription_renewal_at: datetime,
        metrics: dict[str, Any],
        pdf_path: str,
        pdf_checksum: str,
        emailed_at: datetime | None = None,
        generated_at: datetime | None = None,
    ) -> MonthlyReportModel:
        """Persist a generated report.

        Raises:
            RecordAlreadyExistsError: A report for this user and period
                already exists.
        """
        report = MonthlyReportModel(
            user_id=as_uuid(user_id),
            period_start=period_start,
            period_end=period_end,
            subscription_renewal_at=subscription_renewal_at,
            metrics=json.dumps(metrics, ensure_ascii=False, default=str),
            pdf_path=pdf_path,
            pdf_checksum=pdf_checksum,
            generated_at=generated_at or datetime.now(),
            emailed_at=emailed_at,
            notification_id=None,
            retry_count=0,
        )
        return await self.create(report)

    async def link_notification(
        self,
        report_id: UUID | str,
        notification_id: UUID | str,
    ) -> MonthlyReportModel | None:
        """Attach the dashboard notification created for a report."""
        return await self.update(report_id, {"notification_id": as_uuid(notification_id)})

    async def get_pending_email(self, max_retries: int) -> Sequence[MonthlyReportModel]:
        """Get reports whose email was never delivered and may be retried."""
        stmt = (
            select(self._model)
            .where(
                and_(
                    self._model.emailed_at.is_(None),
                    self._model.retry_count < max_retries,
                )
            )
            .order_by(self._model.generated_at)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def mark_emailed(
        self,
        report_id: UUID | str,
        emailed_at: datetime | None = None,
    ) -> MonthlyReportModel | None:
        """Record successful email delivery."""
        return await self.update(report_id, {"emailed_at": emailed_at or datetime.now()})

    async def increment_retry(self, report_id: UUID | str) -> MonthlyReportModel | None:
        """Record one more failed delivery attempt."""
        report = await self.get(report_id)
        if report is None:
            return None
        return await self.update(report_id, {"retry_count": report.retry_count + 1})


class NotificationRepository(BaseRepository[NotificationModel]):
    """Repository for dashboard notifications."""

    def __init__(self, session: AsyncSession):
        super().__init__(NotificationModel, session)

    async def create_notification(
        self,
        *,
        user_id: UUID | str,
        type: NotificationType | str,
        title: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> NotificationModel:
        """Create an unread notification."""
        notification = NotificationModel(
            user_id=as_uuid(user_id),
            type=type.value if isinstance(type, NotificationType) else type,
            title=title,
            message=message,
            metadata_json=(
                json.dumps(metadata, ensure_ascii=False, default=str)
                if metadata is not None
                else None
            ),
            is_read=False,
        )
        return await self.create(notification)

    async def list_for_user(
        self,
        user_id: UUID | str,
        *,
        limit: int = 50,
        unread_only: bool = False,
    ) -> Sequence[NotificationModel]:
        """Get a user's notifications, newest first."""
        conditions = [self._model.user_id == as_uuid(user_id)]
        if unread_only:
            conditions.append(self._model.is_read.is_(False))

        stmt = (
            select(self._model)
            .where(and_(*conditions))
            .order_by(self._model.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def get_for_user(
        self,
        notification_id: UUID | str,
        user_id: UUID | str,
    ) -> NotificationModel | None:
        """Get a notification only if it belongs to the given user."""
        stmt = select(self._model).where(
            and_(
                self._model.id == as_uuid(notification_id),
                self._model.user_id == as_uuid(user_id),
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_as_read(
        self,
        notification_id: UUID | str,
        user_id: UUID | str,
    ) -> NotificationModel | None:
        """Mark one of the user's notifications as read."""
        notification = await self.get_for_user(notification_id, user_id)
        if notification is None:
            return None
        notification.is_read = True
        await self._session.flush()
        return notification

    async def mark_all_as_read(self, user_id: UUID | str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        return await self.bulk_update(
            {"user_id": as_uuid(user_id), "is_read": False},
            {"is_read": True},
        )

    async def delete_for_user(
        self,
        notification_id: UUID | str,
        user_id: UUID | str,
    ) -> bool:
        """Delete one of the user's notifications."""
        notification = await self.get_for_user(notification_id, user_id)
        if notification is None:
            return False
        await self._session.delete(notification)
        await self._session.flush()
        return True

    async def unread_count(self, user_id: UUID | str) -> int:
        """Count a user's unread notifications."""
        stmt = (
            select(func.count())
            .select_from(self._model)
            .where(
                and_(
                    self._model.user_id == as_uuid(user_id),
                    self._model.is_read.is_(False),
                )
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0
