"""
Redis client for worker wake-ups.

The service layer publishes on REDIS_NEW_TASK_CHANNEL, the ingestion worker on
REDIS_NEW_BOOKMARK_CHANNEL, and the worker daemon bridges both into in-process
WakeupSignals. Celery opens its own broker connections and does not use this
client.
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from bookmark_hub.core.config import settings

logger = logging.getLogger(__name__)

# One client per process, created on first use
_client: Optional[Redis] = None


def _build_client() -> Redis:
    pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )
    return Redis(connection_pool=pool)


async def init_redis() -> Redis:
    """
    Connect and ping once.

    Raises:
        redis.exceptions.RedisError: Redis is unreachable; nothing is cached
    """
    global _client

    if _client is None:
        client = _build_client()
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Redis at {settings.REDIS_URL} unreachable: {e}")
            await client.aclose(close_connection_pool=True)
            raise
        _client = client
        logger.info("Redis wake-up client ready")

    return _client


async def get_redis() -> Redis:
    return _client if _client is not None else await init_redis()


async def close_redis() -> None:
    global _client

    if _client is not None:
        logger.info("Closing Redis wake-up client")
        await _client.aclose(close_connection_pool=True)
        _client = None


async def check_redis_health() -> bool:
    """Ping Redis, logging and returning False instead of raising."""
    try:
        redis = await get_redis()
        return bool(await redis.ping())
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
