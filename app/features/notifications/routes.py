"""
Notification inbox routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.notifications import service
from app.features.notifications.models import NotificationType
from app.features.notifications.schemas import NotificationDetail, NotificationList, SeenResponse, UnseenCount
from app.features.users.dependencies import CurrentUser


router = APIRouter(tags=["notifications"])


@router.get("/", response_model=NotificationList)
async def list_notifications(
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    type: NotificationType | None = None
):
    """
    List notifications visible to the caller, newest first.

    Counts always cover every type, regardless of the ``type`` filter.

    Raises:
        HTTPException: 412 when the caller has no organization
    """
    return await service.list_notifications(db, viewer, type)


@router.get("/unseen-count", response_model=UnseenCount)
async def get_unseen_count(
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.unseen_count(db, viewer)


@router.get("/{notification_id}", response_model=NotificationDetail)
async def get_notification(
    notification_id: str,
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.get_notification(db, viewer, notification_id)


@router.post("/{notification_id}/seen", response_model=SeenResponse)
async def mark_seen(
    notification_id: str,
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Mark a notification as seen by the caller."""
    return await service.mark_seen(db, viewer, notification_id)
