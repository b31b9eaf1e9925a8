"""Chat service — the request/response side of messaging.

Learn: The HTTP routes and the realtime engine share one MessageStore
and one UserDirectory, so history over HTTP is exactly what live
clients were sent. Ownership for deletes uses the same rule as the
socket path: only the original sender may delete.
"""

from typing import Optional

from edushare.realtime.channels import conversation_id_for, is_participant
from edushare.schemas.message import ConversationHistory, StoredMessage, enrich
from edushare.schemas.user import PublicProfile
from edushare.services.directory import UserDirectory
from edushare.services.message_store import MessageStore


class MessageNotFoundError(Exception):
    """No message with that id that the caller may act on."""


class NotConversationParticipantError(Exception):
    """Caller asked for a conversation they are not part of."""


class ChatService:
    def __init__(self, store: MessageStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    async def list_partners(self, user_id: str) -> list[PublicProfile]:
        """Everyone the user could chat with (all users but themselves)."""
        return await self.directory.list_users(exclude=user_id)

    async def history_with(
        self, user_id: str, other_user_id: str, limit: Optional[int] = None
    ) -> ConversationHistory:
        return await self._history(conversation_id_for(user_id, other_user_id), limit)

    async def conversation_history(
        self, user_id: str, conversation_id: str, limit: Optional[int] = None
    ) -> ConversationHistory:
        if not is_participant(conversation_id, user_id):
            raise NotConversationParticipantError(conversation_id)
        return await self._history(conversation_id, limit)

    async def _history(
        self, conversation_id: str, limit: Optional[int]
    ) -> ConversationHistory:
        if limit:
            # Latest `limit` messages, still returned oldest first.
            newest = await self.store.find_by_conversation(
                conversation_id, newest_first=True, limit=limit
            )
            messages = list(reversed(newest))
        else:
            messages = await self.store.find_by_conversation(conversation_id)

        # At most two distinct senders per conversation.
        profiles: dict[str, PublicProfile] = {}
        for sender_id in {str(m.sender_id) for m in messages}:
            profile = await self.directory.find_by_id(sender_id)
            profiles[sender_id] = profile or PublicProfile(id=sender_id, username="[deleted]")

        return ConversationHistory(
            conversation_id=conversation_id,
            messages=[enrich(m, profiles[str(m.sender_id)]) for m in messages],
        )

    async def delete_message(self, user_id: str, message_id: str) -> StoredMessage:
        """Delete a message the user sent. Returns the deleted record.

        Raises MessageNotFoundError both when it does not exist and when
        it belongs to someone else.
        """
        message = await self.store.find_by_id(message_id)
        if message is None or str(message.sender_id) != user_id:
            raise MessageNotFoundError(message_id)
        await self.store.delete_by_id(message_id)
        return message
