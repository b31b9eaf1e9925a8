"""Redis pub/sub — mirrors chat events for other processes.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine here: the message store is the durable record and
live clients are served from this process. The mirror exists so workers
(gamification, notifications by email) can react to chat activity.

Channel naming: edushare:events:{channel}
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog

from edushare.config import settings

logger = structlog.get_logger()

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection before exposing it
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def redis_available() -> bool:
    return _redis is not None


async def publish_event(channel: str, event_type: str, data: Any) -> None:
    """Publish a chat event to edushare:events:{channel}.

    No-op when Redis is not connected. Publish errors are logged and
    dropped: a mirror failure must never fail the chat operation that
    already committed.
    """
    if _redis is None:
        return
    payload = json.dumps({"type": event_type, "data": data}, default=str)
    try:
        await _redis.publish(f"edushare:events:{channel}", payload)
    except aioredis.RedisError as e:
        logger.warning("chat.mirror_failed", channel=channel, chat_event=event_type, error=str(e))
