"""Call Repository for VoiceAI.

Read-side queries over call records used by the reporting pipeline.
"""
from __future__ import annotations

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from voiceai.db.models.core import CallModel
from voiceai.db.repositories.base import BaseRepository, as_uuid


class CallRepository(BaseRepository[CallModel]):
    """Repository for call database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize with session.

        Args:
            session: Async database session
        """
        super().__init__(CallModel, session)

    async def get_for_user_in_range(
        self,
        user_id: UUID | str,
        start: datetime,
        end: datetime,
    ) -> Sequence[CallModel]:
        """Get a user's calls created within an inclusive window.

        Args:
            user_id: Owner of the calls
            start: Window start (inclusive)
            end: Window end (inclusive)

        Returns:
            Calls ordered by creation time
        """
        stmt = (
            select(self._model)
            .where(
                and_(
                    self._model.user_id == as_uuid(user_id),
                    self._model.created_at >= start,
                    self._model.created_at <= end,
                )
            )
            .order_by(self._model.created_at)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

