"""Test fixtures — throwaway SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite file (aiosqlite) with the schema created
   from the ORM models, so no Postgres or Redis is needed.
2. get_db is overridden to hand out sessions from that database, and the
   app's MessagingEngine is swapped for one backed by the same file.
3. get_current_user is overridden to "alice" so protected routes work
   without real JWT tokens; unauthenticated_client keeps real auth.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from edushare.auth.dependencies import CurrentIdentity, get_current_user
from edushare.auth.password import hash_password
from edushare.db.engine import get_db
from edushare.db.models import Base, User
from edushare.main import app
from edushare.realtime.engine import MessagingEngine
from edushare.services.directory import SqlUserDirectory
from edushare.services.message_store import SqlMessageStore


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def users(session_factory):
    """alice, bob and carol, returned as {username: user_id}."""
    # Cheap hash, tests don't need bcrypt's default work factor.
    password_hash = hash_password("password123", rounds=4)
    created = {}
    async with session_factory() as db:
        for name in ("alice", "bob", "carol"):
            user = User(
                username=name,
                email=f"{name}@example.com",
                password_hash=password_hash,
                profile={"bio": f"{name} studies physics", "subjects": ["physics"]},
            )
            db.add(user)
            await db.flush()
            created[name] = str(user.id)
        await db.commit()
    return created


@pytest_asyncio.fixture()
async def chat_engine(session_factory):
    """MessagingEngine backed by the test database."""
    return MessagingEngine(
        store=SqlMessageStore(session_factory),
        directory=SqlUserDirectory(session_factory),
    )


async def _install(session_factory, chat_engine, identity=None):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    if identity is not None:
        app.dependency_overrides[get_current_user] = lambda: identity
    previous = app.state.engine
    app.state.engine = chat_engine
    return previous


@pytest_asyncio.fixture()
async def client(session_factory, chat_engine, users):
    """HTTP client authenticated as alice."""
    identity = CurrentIdentity(user_id=users["alice"], username="alice")
    previous = await _install(session_factory, chat_engine, identity)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.engine = previous


@pytest_asyncio.fixture()
async def unauthenticated_client(session_factory, chat_engine):
    """HTTP client WITHOUT auth override, for testing real JWT flows."""
    previous = await _install(session_factory, chat_engine)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.engine = previous
