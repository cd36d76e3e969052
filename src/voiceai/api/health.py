"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from voiceai import __version__
from voiceai.config import get_settings
from voiceai.db.session import get_db_context
from voiceai.services.monthly_report_cron import is_scheduler_running


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    version: str
    environment: str
    checks: dict[str, Any]


@router.get("/health")
async def health_check() -> HealthResponse:
    """Perform health check.

    Components checked:
    - API: Always ok if reachable
    - Database: Connectivity test via SELECT 1
    - Scheduler: Whether the in-process report scheduler runs
    """
    settings = get_settings()

    database = await _check_database()
    checks: dict[str, Any] = {
        "api": "ok",
        "database": database,
        "report_scheduler": _check_scheduler(settings.reports.scheduler_enabled),
    }

    return HealthResponse(
        status="healthy" if database == "ok" else "unhealthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    """Check if the service is alive."""
    return {"status": "alive"}


async def _check_database() -> str | dict[str, Any]:
    """Check database connectivity.

    Returns:
        "ok" if connected, error details otherwise
    """
    try:
        async with get_db_context() as db:
            result = await db.execute(text("SELECT 1"))
            result.fetchone()
        return "ok"
    except Exception as e:
        return {
            "status": "error",
            "message": str(e),
        }


def _check_scheduler(enabled: bool) -> str:
    if not enabled:
        return "disabled"
    return "running" if is_scheduler_running() else "stopped"
