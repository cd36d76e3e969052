"""Repository layer for VoiceAI.

Each repository wraps an AsyncSession and exposes the queries one
aggregate needs; shared CRUD lives in BaseRepository.
"""

from voiceai.db.repositories.base import BaseRepository
from voiceai.db.repositories.calls import CallRepository
from voiceai.db.repositories.reports import (
    MonthlyReportRepository,
    NotificationRepository,
)
from voiceai.db.repositories.users import UserRepository

__all__ = [
    "BaseRepository",
    "CallRepository",
    "MonthlyReportRepository",
    "NotificationRepository",
    "UserRepository",
]
