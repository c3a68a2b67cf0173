"""
Organization-scoped message threads.

Participant rows decide who may read and post in a thread; they also decide
which ``thread:<id>`` realtime channels a socket may join.
"""
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.errors import Forbidden, NotFound, ValidationError
from app.features.messages.models import ChatMessage, Thread, ThreadParticipant
from app.features.messages.schemas import (
    ChatDirectory,
    ChatMember,
    ThreadCreate,
    ThreadDetail,
    ThreadList,
    ThreadMessage,
    ThreadParticipantView,
    ThreadSummary,
)
from app.features.realtime.broker import ChannelBroker, thread_channel
from app.features.users.models import EmploymentStatus, User
from app.utils import get_logger, unique_ids


log = get_logger(__name__)

MESSAGE_EVENT = "message:new"
PRIVATE_THREAD_LIMIT = 10
TITLE_NAME_LIMIT = 3


def _require_organization(viewer: User) -> str:
    if not viewer.organization_id:
        raise ValidationError("Join an organization to use chat.")
    return viewer.organization_id


async def _ensure_membership(
    db: AsyncSession,
    thread_id: str,
    viewer: User,
    organization_id: str
) -> ThreadParticipant:
    result = await db.execute(
        select(ThreadParticipant, Thread.organization_id)
        .join(Thread, Thread.id == ThreadParticipant.thread_id)
        .where(ThreadParticipant.thread_id == thread_id, ThreadParticipant.user_id == viewer.id)
    )
    row = result.first()
    if row is None:
        raise NotFound("Thread is not available.")
    membership, thread_organization_id = row
    if thread_organization_id != organization_id:
        raise Forbidden("Thread is restricted to another organization.")
    return membership


async def _users(db: AsyncSession, user_ids: Iterable[str]) -> dict[str, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}


def _avatar(user: Optional[User]) -> Optional[str]:
    return user.profile.profile_photo_url if user and user.profile else None


def _designation(user: Optional[User]) -> Optional[str]:
    return (user.employment.designation or None) if user and user.employment else None


def _name(user: Optional[User]) -> str:
    return user.display_name if user else "Unknown member"


def build_thread_title(title: Optional[str], participant_names: dict[str, str], viewer_id: str) -> str:
    """
    Stored title when set, otherwise up to three counterpart names.

    ``participant_names`` maps participant user ids to display names.
    """
    if title and title.strip():
        return title.strip()

    names = [name for user_id, name in participant_names.items() if user_id != viewer_id]
    if not names:
        return "Personal Notes"
    return ", ".join(list(dict.fromkeys(names))[:TITLE_NAME_LIMIT])


def _participant_view(user_id: str, users: dict[str, User]) -> ThreadParticipantView:
    user = users.get(user_id)
    return ThreadParticipantView(id=user_id, name=_name(user), avatar_url=_avatar(user), designation=_designation(user))


def _message_view(message: ChatMessage, users: dict[str, User]) -> ThreadMessage:
    sender = users.get(message.sender_id)
    return ThreadMessage(
        id=message.id,
        thread_id=message.thread_id,
        body=message.body,
        created_at=message.created_at,
        sender_id=message.sender_id,
        sender_name=_name(sender),
        sender_avatar=_avatar(sender),
    )


async def list_threads(db: AsyncSession, viewer: User, query: Optional[str] = None) -> ThreadList:
    """Threads the viewer takes part in, most recently active first."""
    organization_id = _require_organization(viewer)

    result = await db.execute(
        select(Thread, ThreadParticipant.last_read_at)
        .join(ThreadParticipant, ThreadParticipant.thread_id == Thread.id)
        .where(ThreadParticipant.user_id == viewer.id, Thread.organization_id == organization_id)
        .order_by(Thread.last_message_at.desc().nulls_last(), Thread.updated_at.desc())
    )
    rows = result.all()

    users = await _users(db, (p.user_id for thread, _ in rows for p in thread.participants))

    summaries = []
    for thread, last_read_at in rows:
        unread_query = select(func.count(ChatMessage.id)).where(
            ChatMessage.thread_id == thread.id,
            ChatMessage.sender_id != viewer.id,
        )
        if last_read_at is not None:
            unread_query = unread_query.where(ChatMessage.created_at > last_read_at)
        unread = (await db.execute(unread_query)).scalar_one()

        last = (await db.execute(
            select(ChatMessage)
            .where(ChatMessage.thread_id == thread.id)
            .order_by(ChatMessage.created_at.desc())
            .limit(1)
        )).scalar_one_or_none()
        if last is not None and last.sender_id not in users:
            users.update(await _users(db, [last.sender_id]))

        participants = [_participant_view(p.user_id, users) for p in thread.participants]
        summaries.append(ThreadSummary(
            id=thread.id,
            title=build_thread_title(thread.title, {p.id: p.name for p in participants}, viewer.id),
            last_message_at=thread.last_message_at,
            last_message=_message_view(last, users) if last else None,
            unread_count=unread,
            participant_count=len(participants),
            participants=participants,
        ))

    if query and query.strip():
        needle = query.strip().lower()
        summaries = [
            summary for summary in summaries
            if needle in summary.title.lower() or any(needle in p.name.lower() for p in summary.participants)
        ]
    return ThreadList(threads=summaries)


async def directory(db: AsyncSession, viewer: User, query: Optional[str] = None) -> ChatDirectory:
    """Teammates the viewer can start a chat with."""
    organization_id = _require_organization(viewer)
    result = await db.execute(
        select(User).where(
            User.organization_id == organization_id,
            User.status != EmploymentStatus.TERMINATED,
        )
    )
    members = sorted(result.scalars().all(), key=lambda user: user.display_name.lower())

    if query and query.strip():
        needle = query.strip().lower()
        members = [m for m in members if needle in m.display_name.lower() or needle in m.email.lower()]

    return ChatDirectory(
        viewer_id=viewer.id,
        members=[
            ChatMember(
                id=member.id,
                name=member.display_name,
                email=member.email,
                avatar_url=_avatar(member),
                designation=_designation(member),
                role=member.role,
            )
            for member in members
        ],
    )


async def list_messages(db: AsyncSession, viewer: User, thread_id: str) -> ThreadDetail:
    """The full thread, oldest message first. Marks the thread read for the viewer."""
    organization_id = _require_organization(viewer)
    membership = await _ensure_membership(db, thread_id, viewer, organization_id)

    thread = await db.get(Thread, thread_id)
    messages = (await db.execute(
        select(ChatMessage).where(ChatMessage.thread_id == thread_id).order_by(ChatMessage.created_at)
    )).scalars().all()

    membership.last_read_at = utcnow()
    await db.commit()

    users = await _users(db, [p.user_id for p in thread.participants] + [m.sender_id for m in messages])
    participants = [_participant_view(p.user_id, users) for p in thread.participants]

    return ThreadDetail(
        id=thread.id,
        title=build_thread_title(thread.title, {p.id: p.name for p in participants}, viewer.id),
        participants=participants,
        messages=[_message_view(message, users) for message in messages],
        viewer_id=viewer.id,
    )


async def create_thread(db: AsyncSession, viewer: User, data: ThreadCreate) -> ThreadDetail:
    """
    Start a thread with an opening message.

    The creator is always a participant. Every participant must be an active
    member of the creator's organization.
    """
    organization_id = _require_organization(viewer)

    body = data.message.strip()
    if not body:
        raise ValidationError("Message cannot be empty.")
    title = (data.title or "").strip() or None
    if title is not None and len(title) < 3:
        raise ValidationError("Title should be at least 3 characters.")

    participant_ids = unique_ids([*data.participant_ids, viewer.id])
    result = await db.execute(
        select(User.id).where(
            User.id.in_(participant_ids),
            User.organization_id == organization_id,
            User.status != EmploymentStatus.TERMINATED,
        )
    )
    if len(set(result.scalars().all())) != len(participant_ids):
        raise ValidationError("One or more participants could not be added to this chat.")

    now = utcnow()
    thread = Thread(
        organization_id=organization_id,
        created_by_id=viewer.id,
        title=title,
        is_private=len(participant_ids) <= PRIVATE_THREAD_LIMIT,
        last_message_at=now,
    )
    db.add(thread)
    await db.flush()

    db.add_all([
        ThreadParticipant(
            thread_id=thread.id,
            user_id=user_id,
            joined_at=now,
            last_read_at=now if user_id == viewer.id else None,
        )
        for user_id in participant_ids
    ])
    db.add(ChatMessage(thread_id=thread.id, sender_id=viewer.id, body=body, created_at=now))
    await db.commit()

    log.info("Thread %s created by %s with %d participant(s)", thread.id, viewer.id, len(participant_ids))
    db.expunge_all()
    return await list_messages(db, viewer, thread.id)


async def send_message(db: AsyncSession, viewer: User, thread_id: str, body: str) -> ThreadMessage:
    organization_id = _require_organization(viewer)
    membership = await _ensure_membership(db, thread_id, viewer, organization_id)

    text = body.strip()
    if not text:
        raise ValidationError("Message cannot be empty.")

    message = ChatMessage(thread_id=thread_id, sender_id=viewer.id, body=text, created_at=utcnow())
    db.add(message)
    await db.execute(
        update(Thread).where(Thread.id == thread_id).values(last_message_at=message.created_at)
    )
    membership.last_read_at = message.created_at
    await db.commit()

    return _message_view(message, {viewer.id: viewer})


async def publish_message(broker: ChannelBroker, message: ThreadMessage) -> None:
    """Push ``message:new`` to everyone subscribed to the thread."""
    try:
        await broker.group_send(
            thread_channel(message.thread_id),
            {"type": MESSAGE_EVENT, "payload": message.model_dump(mode="json")},
        )
    except Exception:
        log.exception("Failed to broadcast message %s", message.id)
