"""Pydantic schemas for users.

Learn: PublicProfile is the only shape the chat layer ever sends about
a user. It is built from the ORM row with from_attributes, so adding a
private column to User can never leak through a socket by accident.
"""

import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field, field_serializer


class ProfileFields(BaseModel):
    bio: Optional[str] = None
    subjects: list[str] = Field(default_factory=list)
    avatar: Optional[str] = None
    gradeLevel: Optional[str] = None
    department: Optional[str] = None

    model_config = {"extra": "ignore"}


class PublicProfile(BaseModel):
    """Safe projection of a user: id, username, public profile fields."""

    id: uuid.UUID | str
    username: str
    profile: ProfileFields = Field(default_factory=ProfileFields)

    model_config = {"from_attributes": True}

    @field_serializer("id")
    def _id_as_str(self, value: Any) -> str:
        return str(value)
