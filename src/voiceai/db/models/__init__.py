"""Database Models for VoiceAI.

Core Models:
- UserModel: Dashboard accounts and their subscription state
- CallModel: Phone call records (read-only for reporting)

Report Models:
- MonthlyReportModel: Generated monthly PDF reports
- NotificationModel: In-app notifications
"""

from voiceai.db.models.core import CallModel, CallStatus, UserModel
from voiceai.db.models.reports import (
    MonthlyReportModel,
    NotificationModel,
    NotificationType,
)

__all__ = [
    "UserModel",
    "CallModel",
    "CallStatus",
    "MonthlyReportModel",
    "NotificationModel",
    "NotificationType",
]
