"""User Repository for VoiceAI."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from voiceai.db.models.core import UserModel
from voiceai.db.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel]):
    """Repository for dashboard accounts."""

    def __init__(self, session: AsyncSession):
        super().__init__(UserModel, session)

    async def get_by_email(self, email: str) -> UserModel | None:
        """Get a user by email address."""
        return await self.find_one(email=email)

    async def get_eligible_for_monthly_report(
        self,
        now: datetime,
        *,
        min_days: float = 1.5,
        max_days: float = 2.5,
    ) -> Sequence[UserModel]:
        """Get users whose subscription renews soon.

        A user is eligible when the subscription is active, the account is a
        regular user account, and the current period ends between
        ``now + min_days`` and ``now + max_days``. Running daily with a one
        day wide window selects every renewing user exactly once.

        Args:
            now: Reference instant (naive local time)
            min_days: Lower bound of the renewal window
            max_days: Upper bound of the renewal window

        Returns:
            Eligible users ordered by renewal date
        """
        window_start = now + timedelta(days=min_days)
        window_end = now + timedelta(days=max_days)

        stmt = (
            select(self._model)
            .where(
                and_(
                    self._model.subscription_status == "active",
                    self._model.role == "user",
                    self._model.subscription_current_period_end >= window_start,
                    self._model.subscription_current_period_end <= window_end,
                )
            )
            .order_by(self._model.subscription_current_period_end)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
