"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The MessagingEngine (presence + channels + dispatch) is built
here and hung on app.state, so both the chat socket and the HTTP chat
routes share a single process-wide instance. Lifespan manages
startup/shutdown (Redis, database engine).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edushare import __version__
from edushare.api import api_router
from edushare.config import settings
from edushare.db.engine import async_session_factory
from edushare.realtime.engine import MessagingEngine
from edushare.realtime.pubsub import publish_event
from edushare.services.directory import SqlUserDirectory
from edushare.services.message_store import SqlMessageStore

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "edushare.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from edushare.realtime.pubsub import close_redis, init_redis
    try:
        await init_redis()
        logger.info("edushare.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("edushare.redis_unavailable", error=str(e))
        # Redis is optional: chat works without the mirror and rate limits

    yield

    logger.info(
        "edushare.shutdown",
        open_connections=app.state.engine.router.connection_count,
    )
    await close_redis()

    from edushare.db.engine import engine
    await engine.dispose()


def build_engine() -> MessagingEngine:
    """Messaging engine wired to the SQL store, user table, and Redis mirror."""
    return MessagingEngine(
        store=SqlMessageStore(async_session_factory),
        directory=SqlUserDirectory(async_session_factory),
        publisher=publish_event,
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="EduShare Connect",
        description="Realtime messaging and presence for the EduShare learning platform",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = build_engine()

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from edushare.middleware.rate_limit import RateLimitMiddleware
    from edushare.middleware.request_id import RequestIdMiddleware
    from edushare.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from edushare.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: edushare.main:app)
app = create_app()
