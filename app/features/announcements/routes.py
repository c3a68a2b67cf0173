"""
HR announcement routes.
"""
from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import get_db, get_session_factory
from app.features.announcements import service
from app.features.announcements.schemas import AnnouncementOverview, AnnouncementSend, AnnouncementSendResponse
from app.features.notifications.events import emit_notification_event
from app.features.permissions.dependencies import HrViewer
from app.features.realtime.dependencies import Broker


router = APIRouter(tags=["announcements"])


@router.get("/", response_model=AnnouncementOverview)
async def get_overview(
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Recent announcements, one item per send, plus who can receive one."""
    return await service.overview(db, viewer)


@router.post("/", response_model=AnnouncementSendResponse, status_code=status.HTTP_201_CREATED)
async def send_announcement(
    announcement: AnnouncementSend,
    viewer: HrViewer,
    db: Annotated[AsyncSession, Depends(get_db)],
    broker: Broker,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    background_tasks: BackgroundTasks
):
    """
    Send an announcement to the organization or to selected teammates.

    Connected recipients are notified after the response is sent.

    Raises:
        HTTPException: 400 when the topic or details are empty, or a
            selected teammate is unavailable
    """
    dispatch_id, notification_ids = await service.send(db, viewer, announcement)
    background_tasks.add_task(emit_notification_event, broker, session_factory, notification_ids)
    return AnnouncementSendResponse(dispatch_id=dispatch_id)
