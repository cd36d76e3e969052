"""Monthly report endpoints for the dashboard.

Users list their own reports and download the stored PDF. Another
user's report id answers 404, exactly like an unknown id.
"""
from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from voiceai_shared import get_logger

from voiceai.api.auth import AuthenticatedUser, get_current_user
from voiceai.api.rate_limits import RateLimits, limiter
from voiceai.db.repositories import MonthlyReportRepository
from voiceai.dependencies import FileStorageDep, get_db


log = get_logger(__name__)

router = APIRouter()

REPORT_NOT_FOUND = "Rapport introuvable"


async def get_report_repository(
    session: Annotated[AsyncSession, Depends(get_db)]
) -> MonthlyReportRepository:
    """Get monthly report repository instance."""
    return MonthlyReportRepository(session)


ReportRepoDep = Annotated[MonthlyReportRepository, Depends(get_report_repository)]
CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]


@router.get("/reports")
@limiter.limit(RateLimits.READ)
async def list_reports(
    request: Request,
    user: CurrentUserDep,
    repo: ReportRepoDep,
) -> list[dict[str, Any]]:
    """List the caller's reports, most recent month first."""
    reports = await repo.list_for_user(user.id)
    return [report.to_dict() for report in reports]


@router.get("/reports/{report_id}/download")
@limiter.limit(RateLimits.DOWNLOAD)
async def download_report(
    request: Request,
    report_id: UUID,
    user: CurrentUserDep,
    repo: ReportRepoDep,
    storage: FileStorageDep,
) -> Response:
    """Stream one of the caller's report PDFs as an attachment."""
    report = await repo.get_for_user(report_id, user.id)
    if report is None:
        raise HTTPException(status_code=404, detail=REPORT_NOT_FOUND)

    if not await storage.exists(report.pdf_path):
        log.warning("report_file_missing", report_id=str(report_id), path=report.pdf_path)
        raise HTTPException(status_code=404, detail=REPORT_NOT_FOUND)

    pdf = await storage.read(report.pdf_path)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="Rapport-Mensuel-{report_id}.pdf"',
        },
    )
