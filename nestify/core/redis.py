"""
Redis connection management for distributed container locks.
"""

import os
from typing import Optional
import redis.asyncio as redis
import logging

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """
    Returns the shared Redis connection.

    Creates a new connection pool if one doesn't exist.
    """
    global _redis_client

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True,
            )

            await _redis_client.ping()
            logger.info("Redis connection established successfully")

        except Exception as e:
            _redis_client = None
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    return _redis_client


async def close_redis_connection():
    """Close the Redis connection during application shutdown."""
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")


async def health_check_redis() -> dict:
    """Ping Redis and report its status for the health endpoint."""
    status = {"status": "disconnected", "error": None}

    try:
        client = await get_redis()
        await client.ping()
        status["status"] = "connected"
    except Exception as e:
        status["error"] = str(e)

    return status
