"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running,
dependencies (database, Redis) are reachable, and reports how many
chat sockets this process is holding.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from edushare import __version__
from edushare.db.engine import get_db

router = APIRouter()


@router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    from edushare.realtime.pubsub import get_redis, redis_available

    if redis_available():
        try:
            await get_redis().ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"
    else:
        checks["redis"] = "disabled"

    engine = request.app.state.engine
    status = "healthy" if checks["database"] == "ok" and checks["redis"] in ("ok", "disabled") else "degraded"

    return {
        "status": status,
        **checks,
        "connections": engine.router.connection_count,
        "online_users": len(engine.presence),
    }
