"""Presence registry — who is online, and on which connection.

Learn: A plain dict behind three methods. It lives only in process
memory and starts empty on every boot; it is a live view, not a
history. One entry per user: a second connection for the same user
replaces the first rather than adding a duplicate.

The registry never broadcasts. MessagingEngine turns register/unregister
results into user-online / user-offline events.
"""

from typing import Optional

from edushare.realtime.channels import Connection


class PresenceRegistry:
    """In-memory user_id → connection map."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def register(self, user_id: str, connection: Connection) -> Optional[Connection]:
        """Map user_id to connection. Returns the connection it replaced, if any."""
        previous = self._connections.get(user_id)
        self._connections[user_id] = connection
        return previous if previous is not connection else None

    def unregister(self, connection: Connection) -> Optional[str]:
        """Drop the entry owned by this connection.

        Returns the user id that went offline, or None when the connection
        never identified or has already been replaced by a newer one.
        """
        user_id = connection.user_id
        if user_id is None or self._connections.get(user_id) is not connection:
            return None
        del self._connections[user_id]
        return user_id

    def list_online(self) -> list[str]:
        return list(self._connections)

    def connection_for(self, user_id: str) -> Optional[Connection]:
        return self._connections.get(user_id)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
