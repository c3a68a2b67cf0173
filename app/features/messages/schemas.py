"""
Pydantic schemas for message threads.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.permissions.roles import UserRole


class ChatMember(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: str | None = None
    designation: str | None = None
    role: UserRole


class ChatDirectory(BaseModel):
    viewer_id: str
    members: list[ChatMember]


class ThreadParticipantView(BaseModel):
    id: str
    name: str
    avatar_url: str | None = None
    designation: str | None = None


class ThreadMessage(BaseModel):
    id: str
    thread_id: str
    body: str
    created_at: datetime
    sender_id: str
    sender_name: str
    sender_avatar: str | None = None


class ThreadSummary(BaseModel):
    id: str
    title: str
    last_message_at: datetime | None = None
    last_message: ThreadMessage | None = None
    unread_count: int
    participant_count: int
    participants: list[ThreadParticipantView]


class ThreadList(BaseModel):
    threads: list[ThreadSummary]


class ThreadDetail(BaseModel):
    id: str
    title: str
    participants: list[ThreadParticipantView]
    messages: list[ThreadMessage]
    viewer_id: str


class ThreadCreate(BaseModel):
    title: str | None = Field(None, max_length=100)
    participant_ids: list[str] = Field(..., min_length=1)
    message: str = Field(..., max_length=2000)


class MessageCreate(BaseModel):
    body: str = Field(..., max_length=2000)
