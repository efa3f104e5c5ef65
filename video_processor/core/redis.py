"""Redis connection configuration."""

from typing import Optional

import redis.asyncio as redis

from video_processor.core.config import settings


def create_redis(url: Optional[str] = None) -> redis.Redis:
    """Create a Redis client for the given URL (defaults to REDIS_URL).

    The caller owns the client and must ``await client.aclose()`` when done.
    """
    return redis.from_url(url or settings.REDIS_URL, decode_responses=True)
