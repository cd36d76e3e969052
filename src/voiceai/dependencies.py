"""Dependency Injection for VoiceAI.

Provides FastAPI dependency functions for services and components.

Thread Safety:
    The report service singleton uses threading.Lock() to prevent race
    conditions during concurrent initialization.

Usage:
    from voiceai.dependencies import ReportServiceDep

    @router.post("/endpoint")
    async def handler(service: ReportServiceDep):
        ...
"""

from __future__ import annotations

import threading
from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from voiceai.config import Settings, get_settings
from voiceai.db.session import get_db as _get_db
from voiceai.services.file_storage import FilesystemStorage
from voiceai.services.monthly_report_cron import (
    MonthlyReportCronService,
    create_monthly_report_service,
)


_report_service_lock = threading.Lock()


# =============================================================================
# Settings Dependency
# =============================================================================


def get_app_settings() -> Settings:
    """Get application settings.

    Returns cached settings instance.
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


# =============================================================================
# Database Dependencies
# =============================================================================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for request.

    Yields session that auto-commits on success, rolls back on error.
    """
    async for session in _get_db():
        yield session


DatabaseDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Report Pipeline Dependencies
# =============================================================================


_report_service_instance: MonthlyReportCronService | None = None


def get_report_service() -> MonthlyReportCronService:
    """Get the monthly report service singleton.

    Thread-safe via double-checked locking pattern. The application
    lifespan creates it at startup and closes it at shutdown.
    """
    global _report_service_instance

    if _report_service_instance is None:
        with _report_service_lock:
            if _report_service_instance is None:
                _report_service_instance = create_monthly_report_service()

    return _report_service_instance


def get_file_storage(
    service: Annotated[MonthlyReportCronService, Depends(get_report_service)],
) -> FilesystemStorage:
    """Get the report file storage."""
    return service.storage


async def shutdown_report_service() -> None:
    """Close the report service browser and drop the singleton."""
    global _report_service_instance

    with _report_service_lock:
        service = _report_service_instance
        _report_service_instance = None

    if service is not None:
        await service.close()


ReportServiceDep = Annotated[MonthlyReportCronService, Depends(get_report_service)]
FileStorageDep = Annotated[FilesystemStorage, Depends(get_file_storage)]
