"""Messaging engine — the chat event loop's dispatch table.

Learn: Each inbound event name maps to one async handler in HANDLERS.
A handler receives the parsed event and an EventContext, performs the
state change it owns (presence, membership, store), and returns a list
of Broadcast instructions. MessagingEngine.dispatch() then applies them.
Handlers never write to sockets directly, which keeps them testable
without a network.

Ordering rules:
- events from one connection are dispatched one at a time, in order
  (the socket loop awaits dispatch() before reading the next frame)
- send-message persists before any broadcast is built
- different connections interleave only at awaited store/directory calls

Error rules:
- ChatValidationError → message-error to the sender only
- any other exception → logged, generic message-error to the sender only
- a non-owner delete-message is a silent no-op
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from edushare.config import settings
from edushare.realtime.channels import (
    Connection,
    ConversationRouter,
    conversation_id_for,
    is_participant,
    personal_channel,
)
from edushare.realtime.events import (
    CLIENT_EVENTS,
    DELETE_MESSAGE,
    DISCONNECT,
    JOIN_CONVERSATION,
    JOIN_USER,
    MESSAGE_DELETED,
    MESSAGE_ERROR,
    MESSAGE_NOTIFICATION,
    NEW_MESSAGE,
    ONLINE_USERS,
    PING,
    PONG,
    SEND_MESSAGE,
    TYPING_START,
    TYPING_STOP,
    USER_OFFLINE,
    USER_ONLINE,
    USER_STOP_TYPING,
    USER_TYPING,
    DeleteMessage,
    Disconnect,
    JoinConversation,
    JoinUser,
    Ping,
    SendMessage,
    TypingStart,
    TypingStop,
    parse_client_event,
)
from edushare.realtime.presence import PresenceRegistry
from edushare.schemas.message import NewMessage, StoredMessage, enrich
from edushare.services.directory import UserDirectory
from edushare.services.message_store import MessageStore

logger = structlog.get_logger()

Publisher = Callable[[str, str, Any], Awaitable[None]]


class ChatValidationError(Exception):
    """Rejected event, reported to the sending connection only."""


# ═══════════════════════════════════════════════════════════
# Broadcast instructions
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Broadcast:
    """Where an outbound event goes.

    target is one of "sender", "channel", "all".
    """

    target: str
    event: str
    data: Any
    channel: Optional[str] = None
    exclude_sender: bool = False

    @classmethod
    def reply(cls, event: str, data: Any) -> "Broadcast":
        return cls("sender", event, data)

    @classmethod
    def to_channel(
        cls, channel: str, event: str, data: Any, exclude_sender: bool = False
    ) -> "Broadcast":
        return cls("channel", event, data, channel=channel, exclude_sender=exclude_sender)

    @classmethod
    def to_everyone(cls, event: str, data: Any) -> "Broadcast":
        return cls("all", event, data)


@dataclass
class EventContext:
    """Everything a handler may touch for one event."""

    connection: Connection
    presence: PresenceRegistry
    router: ConversationRouter
    store: MessageStore
    directory: UserDirectory
    max_message_length: int = 5000

    def require_identity(self, action: str) -> str:
        if self.connection.user_id is None:
            raise ChatValidationError(f"Identify with join-user before {action}")
        return self.connection.user_id


# ═══════════════════════════════════════════════════════════
# Handlers
# ═══════════════════════════════════════════════════════════


async def handle_join_user(event: JoinUser, ctx: EventContext) -> list[Broadcast]:
    user_id = event.data
    conn = ctx.connection
    if conn.principal_id is not None and conn.principal_id != user_id:
        raise ChatValidationError("join-user id does not match the authenticated user")

    broadcasts: list[Broadcast] = []

    # Same socket re-identifying as someone else: retire the old identity first.
    if conn.user_id is not None and conn.user_id != user_id:
        old = ctx.presence.unregister(conn)
        ctx.router.leave(conn, personal_channel(conn.user_id))
        if old:
            broadcasts.append(Broadcast.to_everyone(USER_OFFLINE, old))

    conn.user_id = user_id
    replaced = ctx.presence.register(user_id, conn)
    ctx.router.join(conn, personal_channel(user_id))
    logger.info(
        "chat.user_online",
        user_id=user_id,
        connection_id=conn.id,
        replaced=replaced.id if replaced else None,
    )

    broadcasts.append(Broadcast.to_everyone(USER_ONLINE, user_id))
    broadcasts.append(Broadcast.reply(ONLINE_USERS, ctx.presence.list_online()))
    return broadcasts


async def handle_join_conversation(
    event: JoinConversation, ctx: EventContext
) -> list[Broadcast]:
    # Same rule as the history endpoint. Anonymous dev sockets are unrestricted.
    identity = ctx.connection.user_id or ctx.connection.principal_id
    if identity is not None and not is_participant(event.data, identity):
        raise ChatValidationError("Not a participant of this conversation")
    if ctx.router.join(ctx.connection, event.data):
        logger.debug(
            "chat.joined_conversation",
            connection_id=ctx.connection.id,
            conversation_id=event.data,
        )
    return []


async def handle_send_message(event: SendMessage, ctx: EventContext) -> list[Broadcast]:
    data = event.data
    sender_id = ctx.require_identity("sending messages")
    if data.senderId != sender_id:
        raise ChatValidationError("senderId does not match this connection")
    if not data.content.strip():
        raise ChatValidationError("Message content is empty")
    if len(data.content) > ctx.max_message_length:
        raise ChatValidationError(
            f"Message exceeds {ctx.max_message_length} characters"
        )
    conversation_id = conversation_id_for(data.senderId, data.receiverId)
    if data.conversationId != conversation_id:
        raise ChatValidationError("conversationId does not match participants")

    stored = await ctx.store.create(
        NewMessage(
            sender_id=data.senderId,
            receiver_id=data.receiverId,
            content=data.content,
            conversation_id=conversation_id,
        )
    )

    sender = await ctx.directory.find_by_id(sender_id)
    if sender is None:
        raise LookupError(f"sender {sender_id} not found")

    outgoing = enrich(stored, sender)
    logger.info(
        "chat.message_sent",
        message_id=str(stored.id),
        conversation_id=conversation_id,
        sender_id=sender_id,
    )
    return [
        Broadcast.to_channel(conversation_id, NEW_MESSAGE, outgoing.to_wire()),
        Broadcast.to_channel(
            personal_channel(data.receiverId),
            MESSAGE_NOTIFICATION,
            {
                "conversationId": conversation_id,
                "message": data.content,
                "sender": sender.username,
            },
        ),
    ]


async def handle_typing_start(event: TypingStart, ctx: EventContext) -> list[Broadcast]:
    return [
        Broadcast.to_channel(
            event.data.conversationId,
            USER_TYPING,
            {"userId": event.data.userId, "username": event.data.username},
            exclude_sender=True,
        )
    ]


async def handle_typing_stop(event: TypingStop, ctx: EventContext) -> list[Broadcast]:
    return [
        Broadcast.to_channel(
            event.data.conversationId,
            USER_STOP_TYPING,
            {"userId": event.data.userId},
            exclude_sender=True,
        )
    ]


async def handle_delete_message(
    event: DeleteMessage, ctx: EventContext
) -> list[Broadcast]:
    user_id = ctx.require_identity("deleting messages")
    message = await ctx.store.find_by_id(event.data.messageId)

    # Non-owners get no answer at all, so they cannot probe for ids.
    if message is None or str(message.sender_id) != user_id:
        logger.info(
            "chat.delete_denied",
            message_id=event.data.messageId,
            user_id=user_id,
        )
        return []

    await ctx.store.delete_by_id(event.data.messageId)
    logger.info("chat.message_deleted", message_id=event.data.messageId, user_id=user_id)
    return [deleted_broadcast(message)]


async def handle_ping(event: Ping, ctx: EventContext) -> list[Broadcast]:
    return [Broadcast.reply(PONG, event.data)]


async def handle_disconnect(event: Disconnect, ctx: EventContext) -> list[Broadcast]:
    user_id = ctx.presence.unregister(ctx.connection)
    ctx.router.detach(ctx.connection)
    if user_id is None:
        return []
    logger.info("chat.user_offline", user_id=user_id, connection_id=ctx.connection.id)
    return [Broadcast.to_everyone(USER_OFFLINE, user_id)]


def deleted_broadcast(message: StoredMessage) -> Broadcast:
    return Broadcast.to_channel(
        message.conversation_id, MESSAGE_DELETED, {"messageId": str(message.id)}
    )


HANDLERS: dict[str, Callable[[Any, EventContext], Awaitable[list[Broadcast]]]] = {
    JOIN_USER: handle_join_user,
    JOIN_CONVERSATION: handle_join_conversation,
    SEND_MESSAGE: handle_send_message,
    TYPING_START: handle_typing_start,
    TYPING_STOP: handle_typing_stop,
    DELETE_MESSAGE: handle_delete_message,
    PING: handle_ping,
    DISCONNECT: handle_disconnect,
}

FAILURE_MESSAGES = {
    SEND_MESSAGE: "Error sending message",
    DELETE_MESSAGE: "Error deleting message",
}

# Events worth mirroring to Redis for other processes
MIRRORED_EVENTS = frozenset({NEW_MESSAGE, MESSAGE_DELETED})


# ═══════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════


class MessagingEngine:
    """Owns presence + routing for this process and applies handlers."""

    def __init__(
        self,
        store: MessageStore,
        directory: UserDirectory,
        presence: Optional[PresenceRegistry] = None,
        router: Optional[ConversationRouter] = None,
        publisher: Optional[Publisher] = None,
        max_message_length: Optional[int] = None,
    ):
        self.store = store
        self.directory = directory
        self.presence = presence or PresenceRegistry()
        self.router = router or ConversationRouter()
        self.publisher = publisher
        self.max_message_length = max_message_length or settings.max_message_length

    def context(self, connection: Connection) -> EventContext:
        return EventContext(
            connection=connection,
            presence=self.presence,
            router=self.router,
            store=self.store,
            directory=self.directory,
            max_message_length=self.max_message_length,
        )

    # ─── Connection lifecycle ─────────────────────────────

    def connect(self, connection: Connection) -> None:
        self.router.attach(connection)
        logger.debug("chat.connected", connection_id=connection.id)

    async def disconnect(self, connection: Connection) -> list[Broadcast]:
        return await self._run(connection, Disconnect())

    # ─── Dispatch ─────────────────────────────────────────

    async def dispatch(self, connection: Connection, frame: Any) -> list[Broadcast]:
        """Validate one decoded frame, run its handler, apply broadcasts.

        Never raises: every failure is contained to this event and
        reported (if at all) to this connection only.
        """
        name = frame.get("event") if isinstance(frame, dict) else None
        if not isinstance(name, str) or name not in CLIENT_EVENTS:
            await self.router.send(connection, MESSAGE_ERROR, f"Unknown event: {name}")
            return []
        try:
            event = parse_client_event(frame)
        except ValidationError as e:
            logger.info(
                "chat.invalid_payload",
                connection_id=connection.id,
                chat_event=name,
                errors=e.error_count(),
            )
            await self.router.send(connection, MESSAGE_ERROR, f"Invalid {name} payload")
            return []
        return await self._run(connection, event)

    async def _run(self, connection: Connection, event: Any) -> list[Broadcast]:
        handler = HANDLERS[event.event]
        try:
            broadcasts = await handler(event, self.context(connection))
        except (ChatValidationError, ValueError) as e:
            await self.router.send(connection, MESSAGE_ERROR, str(e))
            return []
        except Exception:
            logger.exception(
                "chat.handler_failed",
                chat_event=event.event,
                connection_id=connection.id,
                user_id=connection.user_id,
            )
            await self.router.send(
                connection,
                MESSAGE_ERROR,
                FAILURE_MESSAGES.get(event.event, "Error processing event"),
            )
            return []
        await self.apply(connection, broadcasts)
        return broadcasts

    async def apply(self, origin: Optional[Connection], broadcasts: list[Broadcast]) -> None:
        """Deliver broadcast instructions in order."""
        for b in broadcasts:
            if b.target == "sender":
                if origin is not None:
                    await self.router.send(origin, b.event, b.data)
            elif b.target == "channel":
                exclude = origin if b.exclude_sender else None
                await self.router.emit(b.channel, b.event, b.data, exclude=exclude)
                if b.event in MIRRORED_EVENTS and self.publisher is not None:
                    await self.publisher(b.channel, b.event, b.data)
            else:
                await self.router.emit_all(b.event, b.data)

    # ─── Entry points for the HTTP path ───────────────────

    async def announce_deleted(self, message: StoredMessage) -> None:
        """Tell live subscribers about a delete made over HTTP."""
        await self.apply(None, [deleted_broadcast(message)])
