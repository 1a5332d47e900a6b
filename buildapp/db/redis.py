# buildapp/db/redis.py
import redis
import redis.asyncio as aioredis

from buildapp.core.config import settings


def get_redis_client():
    """
    Creates and returns a new Redis client instance.
    Connections are opened lazily on first command.
    """
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_async_redis_client():
    """Async client for WebSocket fan-out, where blocking reads are not allowed."""
    return aioredis.from_url(settings.REDIS_URL, decode_responses=True)


# Shared instance used by the event notifier.
redis_client = get_redis_client()
