"""
Message thread routes.
"""
from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.messages import service
from app.features.messages.schemas import (
    ChatDirectory,
    MessageCreate,
    ThreadCreate,
    ThreadDetail,
    ThreadList,
    ThreadMessage,
)
from app.features.realtime.dependencies import Broker
from app.features.users.dependencies import CurrentUser


router = APIRouter(tags=["messages"])


@router.get("/threads", response_model=ThreadList)
async def list_threads(
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    query: Annotated[str | None, Query(max_length=120)] = None
):
    return await service.list_threads(db, viewer, query)


@router.get("/directory", response_model=ChatDirectory)
async def get_directory(
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    query: Annotated[str | None, Query(max_length=120)] = None
):
    return await service.directory(db, viewer, query)


@router.post("/threads", response_model=ThreadDetail, status_code=status.HTTP_201_CREATED)
async def create_thread(
    thread_data: ThreadCreate,
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Start a thread with an opening message.

    Raises:
        HTTPException: 400 when a participant is outside the organization or
            the message is empty
    """
    return await service.create_thread(db, viewer, thread_data)


@router.get("/threads/{thread_id}/messages", response_model=ThreadDetail)
async def list_messages(
    thread_id: str,
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Read a thread; marks it read for the caller."""
    return await service.list_messages(db, viewer, thread_id)


@router.post("/threads/{thread_id}/messages", response_model=ThreadMessage, status_code=status.HTTP_201_CREATED)
async def send_message(
    thread_id: str,
    message_data: MessageCreate,
    viewer: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    broker: Broker,
    background_tasks: BackgroundTasks
):
    """
    Post a message to a thread.

    Raises:
        HTTPException: 404 when the caller is not a participant
        HTTPException: 403 when the thread belongs to another organization
    """
    message = await service.send_message(db, viewer, thread_id, message_data.body)
    background_tasks.add_task(service.publish_message, broker, message)
    return message
