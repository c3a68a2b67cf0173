"""
Realtime push for newly created notifications.

Runs after the HTTP response as a background task with its own database
session. Delivery is best-effort: failures are logged and never reach the
request that created the notifications, and nothing is retried.
"""
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.notifications.models import Notification, NotificationAudience
from app.features.permissions.roles import coerce_role
from app.features.realtime.broker import ChannelBroker, user_channel
from app.features.users.models import EmploymentStatus, User
from app.utils import get_logger


log = get_logger(__name__)

NOTIFICATION_EVENT = "notification:new"


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def notification_timestamp(notification: Notification) -> datetime:
    return notification.sent_at or notification.scheduled_at or notification.created_at


def to_realtime_payload(notification: Notification) -> dict:
    """Minimal projection pushed to devices."""
    return {
        "id": notification.id,
        "title": notification.title,
        "body": notification.body,
        "action_url": notification.action_url,
        "timestamp": isoformat_utc(notification_timestamp(notification)),
        "type": notification.type.value,
        "status": notification.status.value,
    }


async def resolve_recipient_ids(db: AsyncSession, notification: Notification) -> list[str]:
    """
    Users a notification is delivered to.

    ORGANIZATION reaches every non-terminated member, ROLE the non-terminated
    members holding one of the target roles, INDIVIDUAL only the target.
    """
    if notification.audience is NotificationAudience.INDIVIDUAL:
        return [notification.target_user_id] if notification.target_user_id else []

    query = select(User.id).where(
        User.organization_id == notification.organization_id,
        User.status != EmploymentStatus.TERMINATED,
    )
    if notification.audience is NotificationAudience.ROLE:
        roles = [role for role in (coerce_role(value) for value in notification.target_roles or []) if role]
        if not roles:
            return []
        query = query.where(User.role.in_(roles))

    result = await db.execute(query)
    return list(result.scalars().all())


async def emit_notification_event(
    broker: ChannelBroker,
    session_factory: async_sessionmaker[AsyncSession],
    notification_ids: Iterable[str],
) -> None:
    """Push ``notification:new`` to the personal channel of every recipient."""
    ids = list(notification_ids)
    if not ids:
        return

    try:
        async with session_factory() as db:
            result = await db.execute(select(Notification).where(Notification.id.in_(ids)))
            for notification in result.scalars().all():
                event = {"type": NOTIFICATION_EVENT, "payload": to_realtime_payload(notification)}
                for user_id in await resolve_recipient_ids(db, notification):
                    await broker.group_send(user_channel(user_id), event)
    except Exception:
        log.exception("Failed to broadcast notifications %s", ids)
