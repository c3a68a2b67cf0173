from datetime import datetime
from typing import Literal
from pydantic import BaseModel

from app.features.notifications.models import NotificationAudience, NotificationStatus, NotificationType


class NotificationSender(BaseModel):
    id: str
    name: str
    email: str


class NotificationListItem(BaseModel):
    id: str
    title: str
    body: str
    type: NotificationType
    status: NotificationStatus
    is_seen: bool
    action_url: str | None = None
    timestamp: datetime
    source: Literal["MANAGEMENT", "SYSTEM"]
    source_label: str


class NotificationCounts(BaseModel):
    overall: int
    per_type: dict[NotificationType, int]


class NotificationList(BaseModel):
    notifications: list[NotificationListItem]
    total: int
    counts: NotificationCounts


class NotificationDetail(NotificationListItem):
    audience: NotificationAudience
    audience_label: str
    sender: NotificationSender | None = None


class UnseenCount(BaseModel):
    unseen: int


class SeenResponse(BaseModel):
    id: str
    is_seen: bool
