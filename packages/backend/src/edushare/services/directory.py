"""User directory — read-only lookups of public user profiles.

Learn: The chat engine needs exactly one thing from users: "who is
this sender, in a form safe to show other people". UserDirectory is
that seam. SqlUserDirectory backs it with the users table; tests swap
in an in-memory dict.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushare.db.models import User
from edushare.schemas.user import PublicProfile


def parse_id(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    """Parse a client-supplied id. Returns None when it is not a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class UserDirectory(ABC):
    """Lookup of users by id, always through the public projection."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[PublicProfile]:
        ...

    @abstractmethod
    async def list_users(self, exclude: Optional[str] = None) -> list[PublicProfile]:
        ...


class SqlUserDirectory(UserDirectory):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_by_id(self, user_id: str) -> Optional[PublicProfile]:
        uid = parse_id(user_id)
        if uid is None:
            return None
        async with self.session_factory() as db:
            user = await db.get(User, uid)
            return PublicProfile.model_validate(user) if user else None

    async def list_users(self, exclude: Optional[str] = None) -> list[PublicProfile]:
        query = select(User).order_by(User.username)
        excluded = parse_id(exclude) if exclude else None
        if excluded:
            query = query.where(User.id != excluded)
        async with self.session_factory() as db:
            result = await db.execute(query)
            return [PublicProfile.model_validate(u) for u in result.scalars().all()]
