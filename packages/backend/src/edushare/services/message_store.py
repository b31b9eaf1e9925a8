"""Message store — durable append-only log of chat messages.

Learn: The store is the single source of truth for history. The
realtime engine appends through it and broadcasts only after the
append commits, so anything a client saw live is also in history.

Each call opens its own short-lived session: realtime handlers have
no request scope to borrow one from, and holding a session across a
long-lived WebSocket would pin a pooled connection per user.
"""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushare.db.models import Message
from edushare.schemas.message import NewMessage, StoredMessage
from edushare.services.directory import parse_id


class MessageStore(ABC):
    """Append, look up, delete, and list messages by conversation."""

    @abstractmethod
    async def create(self, message: NewMessage) -> StoredMessage:
        ...

    @abstractmethod
    async def find_by_id(self, message_id: str) -> Optional[StoredMessage]:
        ...

    @abstractmethod
    async def delete_by_id(self, message_id: str) -> None:
        ...

    @abstractmethod
    async def find_by_conversation(
        self,
        conversation_id: str,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[StoredMessage]:
        ...


class SqlMessageStore(MessageStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, message: NewMessage) -> StoredMessage:
        sender_id = parse_id(message.sender_id)
        receiver_id = parse_id(message.receiver_id)
        if sender_id is None or receiver_id is None:
            raise ValueError("sender and receiver must be valid user ids")

        row = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=message.content,
            conversation_id=message.conversation_id,
        )
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return StoredMessage.model_validate(row)

    async def find_by_id(self, message_id: str) -> Optional[StoredMessage]:
        mid = parse_id(message_id)
        if mid is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(Message, mid)
            return StoredMessage.model_validate(row) if row else None

    async def delete_by_id(self, message_id: str) -> None:
        mid = parse_id(message_id)
        if mid is None:
            return
        async with self.session_factory() as db:
            await db.execute(delete(Message).where(Message.id == mid))
            await db.commit()

    async def find_by_conversation(
        self,
        conversation_id: str,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[StoredMessage]:
        order = Message.created_at.desc() if newest_first else Message.created_at.asc()
        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(order, Message.id)
        )
        if limit:
            query = query.limit(limit)
        async with self.session_factory() as db:
            result = await db.execute(query)
            return [StoredMessage.model_validate(m) for m in result.scalars().all()]
