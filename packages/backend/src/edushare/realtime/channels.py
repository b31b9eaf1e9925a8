"""Conversation channels — deterministic ids, membership, fan-out.

Learn: Two kinds of channel:
- conversation channel, keyed by conversation_id_for(a, b)
- personal channel "user_<id>", for notifications about any conversation

Membership is connection-scoped and never persisted; a client that
reconnects re-joins. Delivery to one dead connection must not stop
delivery to the rest, so each send is isolated.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

import structlog

logger = structlog.get_logger()

CONVERSATION_SEPARATOR = "_"
PERSONAL_PREFIX = "user_"


def conversation_id_for(user_a: str, user_b: str) -> str:
    """Sort the two ids and join them, so either side gets the same id."""
    if not user_a or not user_b:
        raise ValueError("conversation participants must be non-empty ids")
    return CONVERSATION_SEPARATOR.join(sorted([str(user_a), str(user_b)]))


def personal_channel(user_id: str) -> str:
    return f"{PERSONAL_PREFIX}{user_id}"


def is_participant(conversation_id: str, user_id: str) -> bool:
    """True if user_id is one of the two ids conversation_id was built from."""
    for i, ch in enumerate(conversation_id):
        if ch != CONVERSATION_SEPARATOR:
            continue
        left, right = conversation_id[:i], conversation_id[i + 1:]
        if user_id in (left, right) and conversation_id_for(left, right) == conversation_id:
            return True
    return False


class Connection(ABC):
    """One live client connection.

    user_id is the identity remembered at join-user; principal_id is the
    authenticated user behind the socket (None for anonymous dev sockets).
    """

    def __init__(self, principal_id: Optional[str] = None):
        self.id = uuid.uuid4().hex
        self.principal_id = principal_id
        self.user_id: Optional[str] = None

    @abstractmethod
    async def send(self, event: str, data: Any) -> None:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id[:8]} user={self.user_id}>"


class ConversationRouter:
    """Channel membership tables and fan-out."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._members: dict[str, dict[str, Connection]] = {}
        self._subscriptions: dict[str, set[str]] = {}

    # ─── Membership ───────────────────────────────────────

    def attach(self, connection: Connection) -> None:
        self._connections[connection.id] = connection
        self._subscriptions.setdefault(connection.id, set())

    def detach(self, connection: Connection) -> None:
        """Forget the connection and remove it from every channel."""
        self._connections.pop(connection.id, None)
        for channel in self._subscriptions.pop(connection.id, set()):
            members = self._members.get(channel)
            if members is None:
                continue
            members.pop(connection.id, None)
            if not members:
                del self._members[channel]

    def join(self, connection: Connection, channel: str) -> bool:
        """Subscribe to a channel. Returns False if already a member."""
        if not channel:
            raise ValueError("channel id must be non-empty")
        members = self._members.setdefault(channel, {})
        if connection.id in members:
            return False
        members[connection.id] = connection
        self._subscriptions.setdefault(connection.id, set()).add(channel)
        return True

    def leave(self, connection: Connection, channel: str) -> None:
        members = self._members.get(channel)
        if members and members.pop(connection.id, None) is not None:
            self._subscriptions.get(connection.id, set()).discard(channel)
            if not members:
                del self._members[channel]

    def members(self, channel: str) -> list[Connection]:
        return list(self._members.get(channel, {}).values())

    def channels_of(self, connection: Connection) -> set[str]:
        return set(self._subscriptions.get(connection.id, set()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ─── Delivery ─────────────────────────────────────────

    async def send(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.send(event, data)
            return True
        except Exception as e:
            logger.warning(
                "chat.delivery_failed",
                connection_id=connection.id,
                chat_event=event,
                error=str(e),
            )
            return False

    async def _fan_out(
        self,
        targets: Iterable[Connection],
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        # Snapshot: membership can change while sends are awaited.
        recipients = [c for c in targets if c is not exclude]
        if not recipients:
            return 0
        results = await asyncio.gather(
            *(self.send(c, event, data) for c in recipients)
        )
        return sum(results)

    async def emit(
        self,
        channel: str,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        """Deliver to every member of channel. Returns the delivered count."""
        return await self._fan_out(self.members(channel), event, data, exclude)

    async def emit_all(
        self, event: str, data: Any, exclude: Optional[Connection] = None
    ) -> int:
        return await self._fan_out(list(self._connections.values()), event, data, exclude)
