"""Auth API — registration, login, token refresh.

Learn: Routes for the session principal:
- POST /auth/register → create a new user account
- POST /auth/login → username or email + password → JWT tokens
- POST /auth/refresh → refresh token → new access token
- GET /auth/me → current user's public profile
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from edushare.auth.dependencies import CurrentIdentity, get_current_user
from edushare.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from edushare.auth.password import hash_password, verify_password
from edushare.db.engine import get_db
from edushare.db.models import User
from edushare.schemas.user import ProfileFields, PublicProfile

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    password: str = Field(min_length=8)
    role: Literal["student", "teacher"] = "student"
    profile: Optional[ProfileFields] = None


class LoginRequest(BaseModel):
    login: str = Field(description="Username or email")
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


def _tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(str(user.id), username=user.username),
        refresh_token=create_refresh_token(str(user.id)),
        user_id=str(user.id),
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account."""
    email = body.email.lower()
    username = body.username.strip()

    q = select(User).where(or_(func.lower(User.email) == email, User.username == username))
    result = await db.execute(q)
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="Username or email already registered")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(body.password),
        role=body.role,
        profile=(body.profile or ProfileFields()).model_dump(exclude_none=True),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


# ─── Login / refresh ─────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange credentials for an access/refresh token pair."""
    login_value = body.login.strip()
    q = select(User).where(
        or_(User.username == login_value, func.lower(User.email) == login_value.lower())
    )
    result = await db.execute(q)
    user = result.scalars().first()

    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return _tokens(user)


# ─── Me ──────────────────────────────────────────────────


@router.get("/me", response_model=PublicProfile)
async def me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await db.get(User, uuid.UUID(identity.user_id))
    except ValueError:
        user = None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
