"""Externally triggered cron endpoints.

An external scheduler calls these routes with
``Authorization: Bearer <cron_api_key>``. They are an alternative to the
in-process scheduler for deployments that run several API replicas.
"""
from __future__ import annotations

import hmac
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from voiceai_shared import get_logger

from voiceai.api.rate_limits import RateLimits, limiter
from voiceai.dependencies import ReportServiceDep, SettingsDep


log = get_logger(__name__)

router = APIRouter()

CRON_ENDPOINTS = [
    "POST /api/cron/monthly-reports",
]


def require_cron_api_key(
    settings: SettingsDep,
    authorization: str | None = Header(default=None),
) -> None:
    """Dependency that validates the cron bearer key.

    Raises:
        HTTPException 500: No cron key configured
        HTTPException 401: Key missing or wrong
    """
    if not settings.cron_api_key:
        log.warning("cron_api_key_not_configured")
        raise HTTPException(status_code=500, detail="Cron API not configured")

    api_key = ""
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[len("Bearer "):]

    if not api_key or not hmac.compare_digest(
        api_key.encode(), settings.cron_api_key.encode()
    ):
        raise HTTPException(status_code=401, detail="Invalid API key")


@router.post("/monthly-reports", dependencies=[Depends(require_cron_api_key)])
@limiter.limit(RateLimits.CRON)
async def trigger_monthly_reports(
    request: Request,
    service: ReportServiceDep,
) -> Any:
    """Run the monthly report pipeline now.

    Returns the run summary. Failures that stop the whole run (for example
    the database being unreachable) answer 500.
    """
    log.info("cron_monthly_reports_triggered")
    try:
        summary = await service.run_now()
    except Exception as e:
        log.exception("cron_monthly_reports_failed", error=str(e))
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e)},
        )

    return {
        "success": True,
        "message": "Monthly reports processed",
        "summary": summary.to_dict(),
    }


@router.get("/health", dependencies=[Depends(require_cron_api_key)])
async def cron_health() -> dict[str, Any]:
    """List the cron endpoints; also verifies the caller's key."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": CRON_ENDPOINTS,
    }
