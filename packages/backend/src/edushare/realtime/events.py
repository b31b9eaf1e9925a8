"""Chat event names and inbound payload models.

Learn: Every WebSocket frame is {"event": <name>, "data": <payload>}.
Inbound frames are parsed into one Pydantic model per event name
(a discriminated union on "event"), so a malformed payload is rejected
at the boundary instead of surfacing later as a None somewhere deep in
a handler.

Event and field names match the existing web client verbatim.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter

# ─── Inbound (client → server) ───────────────────────────

JOIN_USER = "join-user"
JOIN_CONVERSATION = "join-conversation"
SEND_MESSAGE = "send-message"
TYPING_START = "typing-start"
TYPING_STOP = "typing-stop"
DELETE_MESSAGE = "delete-message"
PING = "ping"

# Synthesised by the socket endpoint when the connection closes
DISCONNECT = "disconnect"

# ─── Outbound (server → client) ──────────────────────────

ONLINE_USERS = "online-users"
USER_ONLINE = "user-online"
USER_OFFLINE = "user-offline"
NEW_MESSAGE = "new-message"
MESSAGE_NOTIFICATION = "message-notification"
USER_TYPING = "user-typing"
USER_STOP_TYPING = "user-stop-typing"
MESSAGE_DELETED = "message-deleted"
MESSAGE_ERROR = "message-error"
PONG = "pong"


Identifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SendMessageData(_Payload):
    senderId: Identifier
    receiverId: Identifier
    content: str = Field(min_length=1)
    conversationId: Identifier


class TypingData(_Payload):
    conversationId: Identifier
    userId: Identifier
    username: Optional[str] = None


class DeleteMessageData(_Payload):
    messageId: Identifier
    conversationId: Identifier


# ─── Envelopes ───────────────────────────────────────────


class JoinUser(BaseModel):
    event: Literal["join-user"]
    data: Identifier


class JoinConversation(BaseModel):
    event: Literal["join-conversation"]
    data: Identifier


class SendMessage(BaseModel):
    event: Literal["send-message"]
    data: SendMessageData


class TypingStart(BaseModel):
    event: Literal["typing-start"]
    data: TypingData


class TypingStop(BaseModel):
    event: Literal["typing-stop"]
    data: TypingData


class DeleteMessage(BaseModel):
    event: Literal["delete-message"]
    data: DeleteMessageData


class Ping(BaseModel):
    event: Literal["ping"]
    data: Any = None


class Disconnect(BaseModel):
    event: Literal["disconnect"] = "disconnect"
    data: None = None


ClientEvent = Annotated[
    Union[JoinUser, JoinConversation, SendMessage, TypingStart, TypingStop, DeleteMessage, Ping],
    Field(discriminator="event"),
]

_client_event = TypeAdapter(ClientEvent)

CLIENT_EVENTS = frozenset(
    {JOIN_USER, JOIN_CONVERSATION, SEND_MESSAGE, TYPING_START, TYPING_STOP, DELETE_MESSAGE, PING}
)


def parse_client_event(frame: Any):
    """Validate a decoded frame. Raises pydantic.ValidationError."""
    return _client_event.validate_python(frame)


def frame(event: str, data: Any) -> dict[str, Any]:
    """Outbound envelope."""
    return {"event": event, "data": data}
