"""Pydantic schemas for chat messages.

Learn: Two shapes on purpose:
- StoredMessage mirrors the persisted row (what the store returns)
- OutgoingMessage is StoredMessage plus the sender's public profile,
  built by enrich() right before a broadcast or history response.
The enrichment never flows back into the store.

Wire field names are camelCase (senderId, conversationId, ...) for the
existing web client; Python code uses snake_case.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from edushare.schemas.user import PublicProfile


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class NewMessage(_WireModel):
    """A message about to be appended to the store."""

    sender_id: str
    receiver_id: str
    content: str
    conversation_id: str


class StoredMessage(_WireModel):
    id: uuid.UUID | str
    sender_id: uuid.UUID | str
    receiver_id: uuid.UUID | str
    content: str
    conversation_id: str
    created_at: datetime

    @field_serializer("id", "sender_id", "receiver_id")
    def _ids_as_str(self, value: Any) -> str:
        return str(value)


class OutgoingMessage(StoredMessage):
    """StoredMessage enriched with the sender's public profile."""

    sender: PublicProfile


def enrich(message: StoredMessage, sender: PublicProfile) -> OutgoingMessage:
    """Attach a sender profile to a stored message without touching it."""
    return OutgoingMessage(**message.model_dump(), sender=sender)


class ConversationHistory(_WireModel):
    conversation_id: str
    messages: list[OutgoingMessage]
