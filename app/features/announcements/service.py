"""
Announcement fan-out and the dispatch overview.

Sending writes one notification row for an organization-wide announcement,
or one row per recipient for a targeted one. Every row of a send shares a
``dispatch_id`` so the overview can fold them back into a single item.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.errors import ValidationError
from app.features.announcements.schemas import (
    AnnouncementListItem,
    AnnouncementOverview,
    AnnouncementRecipient,
    AnnouncementSend,
)
from app.features.notifications.models import (
    Notification,
    NotificationAudience,
    NotificationStatus,
    NotificationType,
)
from app.features.permissions.guards import resolve_scope
from app.features.users.models import EmploymentStatus, User
from app.utils import get_logger, unique_ids


log = get_logger(__name__)

ANNOUNCEMENT_LIMIT = 40
BODY_PREVIEW_LIMIT = 160
ANNOUNCEMENT_ACTION_URL = "/notification"


def build_body_preview(value: str, limit: int = BODY_PREVIEW_LIMIT) -> str:
    if len(value) <= limit:
        return value
    return f"{value[:limit - 1]}…"


def build_audience_label(audience: NotificationAudience, recipients: list[AnnouncementRecipient]) -> str:
    if audience is NotificationAudience.ORGANIZATION:
        return "Entire organization"
    if not recipients:
        return "Specific teammates"
    if len(recipients) == 1:
        return recipients[0].name
    return f"{len(recipients)} teammates"


def format_display_name(user: User) -> str:
    """Preferred, first and last name joined, else the email."""
    profile = user.profile
    if profile is not None:
        parts = [
            value.strip()
            for value in (profile.preferred_name, profile.first_name, profile.last_name)
            if isinstance(value, str) and value.strip()
        ]
        if parts:
            return " ".join(parts)
    return user.email


def to_recipient(user: User) -> AnnouncementRecipient:
    return AnnouncementRecipient(id=user.id, name=format_display_name(user), email=user.email, role=user.role)


@dataclass
class _Dispatch:
    id: str
    title: str
    body: str
    status: NotificationStatus
    audience: NotificationAudience
    sent_at: Optional[datetime]
    created_at: datetime
    sender_id: Optional[str]
    sender_name: Optional[str]
    recipients: list[AnnouncementRecipient] = field(default_factory=list)


def _group_key(row: Notification) -> str:
    if row.dispatch_id and row.dispatch_id.strip():
        return row.dispatch_id
    return row.id


def _row_audience(row: Notification) -> NotificationAudience:
    if row.audience_mode in (NotificationAudience.ORGANIZATION, NotificationAudience.INDIVIDUAL):
        return row.audience_mode
    return row.audience


def transform_announcements(
    rows: Iterable[Notification],
    users: Mapping[str, User]
) -> list[AnnouncementListItem]:
    """
    Fold announcement rows into one item per dispatch.

    ``users`` maps ids to the senders and targets referenced by the rows.
    The result depends only on its inputs.
    """
    groups: dict[str, _Dispatch] = {}

    for row in rows:
        key = _group_key(row)
        audience = _row_audience(row)
        sender = users.get(row.sender_id) if row.sender_id else None
        sender_name = format_display_name(sender) if sender else None

        group = groups.get(key)
        if group is None:
            group = groups[key] = _Dispatch(
                id=key,
                title=row.title,
                body=row.body,
                status=row.status,
                audience=audience,
                sent_at=row.sent_at,
                created_at=row.created_at,
                sender_id=sender.id if sender else None,
                sender_name=sender_name,
            )
        else:
            if row.sent_at and (group.sent_at is None or row.sent_at > group.sent_at):
                group.sent_at = row.sent_at
            if row.created_at < group.created_at:
                group.created_at = row.created_at
            if audience is NotificationAudience.ORGANIZATION:
                group.audience = NotificationAudience.ORGANIZATION
            if group.sender_id is None and sender is not None:
                group.sender_id = sender.id
                group.sender_name = sender_name

        target = users.get(row.target_user_id) if row.target_user_id else None
        if row.audience is NotificationAudience.INDIVIDUAL and target is not None:
            if all(existing.id != target.id for existing in group.recipients):
                group.recipients.append(to_recipient(target))

    ordered = sorted(groups.values(), key=lambda entry: entry.sent_at or entry.created_at, reverse=True)

    items = []
    for entry in ordered:
        recipients = sorted(entry.recipients, key=lambda recipient: recipient.name.lower())
        items.append(AnnouncementListItem(
            id=entry.id,
            title=entry.title,
            body=entry.body,
            body_preview=build_body_preview(entry.body),
            status=entry.status,
            audience=entry.audience,
            audience_label=build_audience_label(entry.audience, recipients),
            sent_at=entry.sent_at,
            created_at=entry.created_at,
            recipient_count=len(recipients),
            recipients=recipients,
            is_organization_wide=entry.audience is NotificationAudience.ORGANIZATION,
            sender_id=entry.sender_id,
            sender_name=entry.sender_name,
        ))
    return items


def _name_sort_key(user: User) -> tuple[str, str, str]:
    profile = user.profile
    first = (profile.first_name or "") if profile else ""
    last = (profile.last_name or "") if profile else ""
    return first.lower(), last.lower(), user.email.lower()


async def get_eligible_recipients(db: AsyncSession, organization_id: str) -> list[User]:
    result = await db.execute(
        select(User).where(
            User.organization_id == organization_id,
            User.status != EmploymentStatus.TERMINATED,
        )
    )
    return sorted(result.scalars().all(), key=_name_sort_key)


async def overview(db: AsyncSession, viewer: User) -> AnnouncementOverview:
    scope = resolve_scope(viewer)

    result = await db.execute(
        select(Notification)
        .where(
            Notification.organization_id == scope,
            Notification.type == NotificationType.ANNOUNCEMENT,
        )
        .order_by(Notification.sent_at.desc().nulls_last(), Notification.created_at.desc())
        .limit(ANNOUNCEMENT_LIMIT)
    )
    rows = list(result.scalars().all())

    user_ids = {row.sender_id for row in rows if row.sender_id}
    user_ids.update(row.target_user_id for row in rows if row.target_user_id)
    users: dict[str, User] = {}
    if user_ids:
        user_result = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {user.id: user for user in user_result.scalars().all()}

    eligible = await get_eligible_recipients(db, scope)

    return AnnouncementOverview(
        viewer_role=viewer.role,
        announcements=transform_announcements(rows, users),
        recipients=[to_recipient(user) for user in eligible],
    )


async def send(db: AsyncSession, viewer: User, data: AnnouncementSend) -> tuple[str, list[str]]:
    """
    Create the notification rows for one announcement.

    Returns the dispatch id and the ids of the created rows. Either every row
    is committed or none is.

    Raises:
        ValidationError: empty title or body, no recipients, or a recipient
            outside the organization or terminated
    """
    scope = resolve_scope(viewer)
    title = data.title.strip()
    body = data.body.strip()

    if not title:
        raise ValidationError("Provide an announcement topic.")
    if not body:
        raise ValidationError("Write the announcement details.")
    if data.audience is NotificationAudience.ROLE:
        raise ValidationError("Announcements go to the whole organization or to selected teammates.")

    dispatch_id = str(uuid.uuid4())
    sent_at = utcnow()

    def build(audience: NotificationAudience, target_user_id: Optional[str] = None) -> Notification:
        return Notification(
            organization_id=scope,
            sender_id=viewer.id,
            title=title,
            body=body,
            type=NotificationType.ANNOUNCEMENT,
            status=NotificationStatus.SENT,
            audience=audience,
            target_roles=[],
            target_user_id=target_user_id,
            action_url=ANNOUNCEMENT_ACTION_URL,
            dispatch_id=dispatch_id,
            audience_mode=data.audience,
            sent_at=sent_at,
        )

    if data.audience is NotificationAudience.ORGANIZATION:
        notifications = [build(NotificationAudience.ORGANIZATION)]
    else:
        recipient_ids = unique_ids(data.recipient_ids or [])
        if not recipient_ids:
            raise ValidationError("Select at least one teammate to notify.")

        result = await db.execute(
            select(User.id).where(
                User.id.in_(recipient_ids),
                User.organization_id == scope,
                User.status != EmploymentStatus.TERMINATED,
            )
        )
        valid = set(result.scalars().all())
        if len(valid) != len(recipient_ids):
            raise ValidationError("Some selected teammates are no longer available.")

        notifications = [build(NotificationAudience.INDIVIDUAL, user_id) for user_id in recipient_ids]

    db.add_all(notifications)
    await db.commit()

    log.info(
        "Announcement %s sent by %s to %d notification(s)",
        dispatch_id, viewer.id, len(notifications)
    )
    return dispatch_id, [notification.id for notification in notifications]
