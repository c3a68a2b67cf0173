"""
WebSocket endpoint for realtime events.

Clients connect to ``/realtime/ws?token=<bearer token>``. On connect the
socket joins the caller's personal channel and the channel of every thread
they participate in. Server pushes are ``{"type": ..., "payload": ...}``
frames; the only client message understood is

    {"type": "thread:subscribe", "thread_id": "..."}
"""
import json
from typing import Annotated
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import get_session_factory
from app.features.messages.models import ThreadParticipant
from app.features.realtime.broker import thread_channel, user_channel
from app.features.realtime.dependencies import Broker
from app.features.users.auth import authenticate
from app.features.users.dependencies import INACTIVE_STATUSES
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

router = APIRouter(tags=["realtime"])


async def _authenticate(session_factory: async_sessionmaker[AsyncSession], token: str) -> User | None:
    async with session_factory() as db:
        try:
            user, _session = await authenticate(db, token)
        except HTTPException:
            return None
    if user.status in INACTIVE_STATUSES:
        return None
    return user


async def _thread_ids(session_factory: async_sessionmaker[AsyncSession], user_id: str) -> list[str]:
    async with session_factory() as db:
        result = await db.execute(select(ThreadParticipant.thread_id).where(ThreadParticipant.user_id == user_id))
        return list(result.scalars().all())


async def _is_participant(session_factory: async_sessionmaker[AsyncSession], user_id: str, thread_id: str) -> bool:
    async with session_factory() as db:
        result = await db.execute(
            select(ThreadParticipant.id).where(
                ThreadParticipant.thread_id == thread_id,
                ThreadParticipant.user_id == user_id,
            )
        )
        return result.first() is not None


async def _error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"type": "error", "message": message})


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    broker: Broker,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    token: str = ""
):
    user = await _authenticate(session_factory, token) if token else None
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    channels = [user_channel(user.id)]
    channels += [thread_channel(thread_id) for thread_id in await _thread_ids(session_factory, user.id)]
    for channel in channels:
        await broker.group_add(channel, websocket)

    log.debug("User %s connected to %d channel(s)", user.id, len(channels))
    await websocket.send_json({"type": "connected", "payload": {"channels": channels}})

    try:
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                await _error(websocket, "Invalid JSON")
                continue

            message_type = data.get("type") if isinstance(data, dict) else None
            if message_type == "thread:subscribe":
                thread_id = data.get("thread_id")
                if (
                    not isinstance(thread_id, str)
                    or not thread_id
                    or not await _is_participant(session_factory, user.id, thread_id)
                ):
                    await _error(websocket, "Thread is not available.")
                    continue
                await broker.group_add(thread_channel(thread_id), websocket)
                await websocket.send_json({"type": "thread:subscribed", "payload": {"thread_id": thread_id}})
            else:
                await _error(websocket, f"Unknown message type: {message_type}")
    except WebSocketDisconnect:
        pass
    finally:
        await broker.disconnect(websocket)
        log.debug("User %s disconnected", user.id)
