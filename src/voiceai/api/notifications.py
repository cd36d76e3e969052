"""Dashboard notification endpoints."""
from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from voiceai.api.auth import AuthenticatedUser, get_current_user
from voiceai.api.rate_limits import RateLimits, limiter
from voiceai.db.repositories import NotificationRepository
from voiceai.dependencies import get_db


router = APIRouter()


async def get_notification_repository(
    session: Annotated[AsyncSession, Depends(get_db)]
) -> NotificationRepository:
    """Get notification repository instance."""
    return NotificationRepository(session)


NotificationRepoDep = Annotated[NotificationRepository, Depends(get_notification_repository)]
CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]


@router.get("/notifications")
@limiter.limit(RateLimits.READ)
async def list_notifications(
    request: Request,
    user: CurrentUserDep,
    repo: NotificationRepoDep,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
) -> list[dict[str, Any]]:
    """List the caller's notifications, newest first."""
    notifications = await repo.list_for_user(user.id, limit=limit, unread_only=unread_only)
    return [n.to_dict() for n in notifications]


@router.get("/notifications/unread-count")
async def unread_count(
    user: CurrentUserDep,
    repo: NotificationRepoDep,
) -> dict[str, int]:
    return {"count": await repo.unread_count(user.id)}


@router.patch("/notifications/{notification_id}/read")
@limiter.limit(RateLimits.WRITE)
async def mark_notification_read(
    request: Request,
    notification_id: UUID,
    user: CurrentUserDep,
    repo: NotificationRepoDep,
) -> dict[str, Any]:
    notification = await repo.mark_as_read(notification_id, user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification introuvable")
    return notification.to_dict()


@router.post("/notifications/read-all")
@limiter.limit(RateLimits.WRITE)
async def mark_all_notifications_read(
    request: Request,
    user: CurrentUserDep,
    repo: NotificationRepoDep,
) -> dict[str, int]:
    """Mark every unread notification of the caller as read."""
    return {"updated": await repo.mark_all_as_read(user.id)}


@router.delete("/notifications/{notification_id}")
@limiter.limit(RateLimits.WRITE)
async def delete_notification(
    request: Request,
    notification_id: UUID,
    user: CurrentUserDep,
    repo: NotificationRepoDep,
) -> dict[str, bool]:
    if not await repo.delete_for_user(notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification introuvable")
    return {"success": True}
