"""
Per-viewer notification inbox.

A viewer sees SENT and SCHEDULED rows of their organization addressed to
the whole organization, to their role, or to them individually. Seen state
is stored per viewer in NotificationReceipt.
"""
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.errors import NotFound, PreconditionFailed
from app.features.notifications.events import notification_timestamp
from app.features.notifications.models import (
    Notification,
    NotificationAudience,
    NotificationReceipt,
    NotificationStatus,
    NotificationType,
)
from app.features.notifications.schemas import (
    NotificationCounts,
    NotificationDetail,
    NotificationList,
    NotificationListItem,
    NotificationSender,
    SeenResponse,
    UnseenCount,
)
from app.features.permissions.roles import ROLE_LABELS, coerce_role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

VISIBLE_STATUSES = (NotificationStatus.SENT, NotificationStatus.SCHEDULED)

SOURCE_LABELS = {"MANAGEMENT": "Management", "SYSTEM": "System"}


def _require_organization(viewer: User) -> str:
    if not viewer.organization_id:
        raise PreconditionFailed("Missing organization context for notifications.")
    return viewer.organization_id


def _is_addressed_to(notification: Notification, viewer: User) -> bool:
    if notification.audience is NotificationAudience.ORGANIZATION:
        return True
    if notification.audience is NotificationAudience.ROLE:
        role = coerce_role(viewer.role)
        return role is not None and role.value in (notification.target_roles or [])
    return notification.target_user_id == viewer.id


async def _visible(
    db: AsyncSession,
    viewer: User,
    notification_id: Optional[str] = None,
    statuses: tuple[NotificationStatus, ...] = VISIBLE_STATUSES
) -> list[Notification]:
    organization_id = _require_organization(viewer)
    query = (
        select(Notification)
        .where(
            Notification.organization_id == organization_id,
            Notification.status.in_(statuses),
            or_(
                Notification.audience.in_([NotificationAudience.ORGANIZATION, NotificationAudience.ROLE]),
                and_(
                    Notification.audience == NotificationAudience.INDIVIDUAL,
                    Notification.target_user_id == viewer.id,
                ),
            ),
        )
        .order_by(
            Notification.sent_at.desc().nulls_last(),
            Notification.scheduled_at.desc().nulls_last(),
            Notification.created_at.desc(),
        )
    )
    if notification_id:
        query = query.where(Notification.id == notification_id)

    result = await db.execute(query)
    # target_roles is a JSON list, so role matching happens here
    return [row for row in result.scalars().all() if _is_addressed_to(row, viewer)]


async def _receipts(db: AsyncSession, viewer: User, notification_ids: list[str]) -> dict[str, NotificationReceipt]:
    if not notification_ids:
        return {}
    result = await db.execute(
        select(NotificationReceipt).where(
            NotificationReceipt.user_id == viewer.id,
            NotificationReceipt.notification_id.in_(notification_ids),
        )
    )
    return {receipt.notification_id: receipt for receipt in result.scalars().all()}


def _list_item(notification: Notification, receipt: Optional[NotificationReceipt]) -> NotificationListItem:
    source = "MANAGEMENT" if notification.type is NotificationType.ANNOUNCEMENT else "SYSTEM"
    return NotificationListItem(
        id=notification.id,
        title=notification.title,
        body=notification.body,
        type=notification.type,
        status=notification.status,
        is_seen=bool(receipt and receipt.is_seen),
        action_url=notification.action_url,
        timestamp=notification_timestamp(notification),
        source=source,
        source_label=SOURCE_LABELS[source],
    )


def _audience_label(notification: Notification, viewer: User) -> str:
    if notification.audience is NotificationAudience.ORGANIZATION:
        return "Entire organization"
    if notification.audience is NotificationAudience.ROLE:
        labels = [ROLE_LABELS[role] for role in map(coerce_role, notification.target_roles or []) if role]
        return ", ".join(labels) if labels else "Role specific"
    return "You" if notification.target_user_id == viewer.id else "Individual teammate"


async def list_notifications(
    db: AsyncSession,
    viewer: User,
    type: Optional[NotificationType] = None
) -> NotificationList:
    visible = await _visible(db, viewer)

    per_type = {notification_type: 0 for notification_type in NotificationType}
    for notification in visible:
        per_type[notification.type] += 1

    selected = [row for row in visible if type is None or row.type is type]
    receipts = await _receipts(db, viewer, [row.id for row in selected])
    items = [_list_item(row, receipts.get(row.id)) for row in selected]

    return NotificationList(
        notifications=items,
        total=len(items),
        counts=NotificationCounts(overall=sum(per_type.values()), per_type=per_type),
    )


async def _get_visible(db: AsyncSession, viewer: User, notification_id: str) -> Notification:
    rows = await _visible(db, viewer, notification_id)
    if not rows:
        raise NotFound("Notification could not be found.")
    return rows[0]


async def get_notification(db: AsyncSession, viewer: User, notification_id: str) -> NotificationDetail:
    notification = await _get_visible(db, viewer, notification_id)
    receipts = await _receipts(db, viewer, [notification.id])

    sender = None
    if notification.sender_id:
        sender_user = await db.get(User, notification.sender_id)
        if sender_user is not None:
            sender = NotificationSender(id=sender_user.id, name=sender_user.display_name, email=sender_user.email)

    item = _list_item(notification, receipts.get(notification.id))
    return NotificationDetail(
        **item.model_dump(),
        audience=notification.audience,
        audience_label=_audience_label(notification, viewer),
        sender=sender,
    )


async def unseen_count(db: AsyncSession, viewer: User) -> UnseenCount:
    sent = await _visible(db, viewer, statuses=(NotificationStatus.SENT,))
    receipts = await _receipts(db, viewer, [row.id for row in sent])
    unseen = sum(1 for row in sent if not (row.id in receipts and receipts[row.id].is_seen))
    return UnseenCount(unseen=unseen)


async def mark_seen(db: AsyncSession, viewer: User, notification_id: str) -> SeenResponse:
    """Record that the viewer has seen a notification. Repeat calls are no-ops."""
    notification = await _get_visible(db, viewer, notification_id)
    receipt = (await _receipts(db, viewer, [notification.id])).get(notification.id)

    if receipt is None:
        db.add(NotificationReceipt(
            notification_id=notification.id,
            user_id=viewer.id,
            is_seen=True,
            seen_at=utcnow(),
        ))
        await db.commit()
    elif not receipt.is_seen:
        receipt.is_seen = True
        receipt.seen_at = utcnow()
        await db.commit()

    return SeenResponse(id=notification.id, is_seen=True)
