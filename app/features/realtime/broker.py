"""
In-process channel broker for realtime delivery.

Connections join named groups (``user:<id>``, ``thread:<id>``) and events are
fanned out to every member of a group. The API mirrors a channel layer's
``group_add`` / ``group_discard`` / ``group_send`` so a networked layer can
replace it without touching callers.

One broker lives on ``app.state.broker`` for the life of the process.
"""
from collections import defaultdict
from typing import Any, Protocol

from app.utils import get_logger


log = get_logger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


def thread_channel(thread_id: str) -> str:
    return f"thread:{thread_id}"


class ChannelBroker:
    """Group membership table plus best-effort fan-out."""

    def __init__(self) -> None:
        self._groups: dict[str, set[Connection]] = defaultdict(set)

    async def group_add(self, group: str, connection: Connection) -> None:
        self._groups[group].add(connection)

    async def group_discard(self, group: str, connection: Connection) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._groups[group]

    async def disconnect(self, connection: Connection) -> None:
        """Remove a connection from every group it joined."""
        for group in [name for name, members in self._groups.items() if connection in members]:
            await self.group_discard(group, connection)

    async def group_send(self, group: str, event: dict) -> int:
        """
        Send an event to every connection in the group.

        A connection that fails to receive is dropped from the group; the
        rest still get the event. Returns how many sends succeeded.
        """
        delivered = 0
        for connection in list(self._groups.get(group, ())):
            try:
                await connection.send_json(event)
                delivered += 1
            except Exception:
                log.warning("Dropping connection from %s after failed send", group, exc_info=True)
                await self.group_discard(group, connection)
        return delivered

    def members(self, group: str) -> frozenset:
        return frozenset(self._groups.get(group, ()))

    def groups_of(self, connection: Connection) -> set[str]:
        return {name for name, members in self._groups.items() if connection in members}
