"""
Pydantic schemas for HR announcements.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.notifications.models import NotificationAudience, NotificationStatus
from app.features.permissions.roles import UserRole


class AnnouncementRecipient(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole


class AnnouncementListItem(BaseModel):
    """One dispatch, however many notification rows it fanned out to."""
    id: str
    title: str
    body: str
    body_preview: str
    status: NotificationStatus
    audience: NotificationAudience
    audience_label: str
    sent_at: datetime | None = None
    created_at: datetime
    recipient_count: int
    recipients: list[AnnouncementRecipient]
    is_organization_wide: bool
    sender_id: str | None = None
    sender_name: str | None = None


class AnnouncementOverview(BaseModel):
    viewer_role: UserRole
    announcements: list[AnnouncementListItem]
    recipients: list[AnnouncementRecipient]


class AnnouncementSend(BaseModel):
    title: str = Field(..., max_length=255)
    body: str
    audience: NotificationAudience = NotificationAudience.ORGANIZATION
    recipient_ids: list[str] | None = None


class AnnouncementSendResponse(BaseModel):
    dispatch_id: str
