"""
Redis client utilities for basecore.

Provides lazy-initialized Redis clients to avoid import-time connections.
The sync client backs the stream log; the asyncio client backs pub/sub.
"""

import functools

import redis
import redis.asyncio as aioredis

from basecore.settings import get_settings


@functools.lru_cache()
def get_redis_client() -> redis.Redis:
    """
    Get Redis client (cached).

    This function lazily initializes the Redis client to avoid import-time connections.
    """
    return redis.from_url(get_settings().REDIS_URL, decode_responses=True)


def create_async_redis_client(url: str | None = None) -> aioredis.Redis:
    """
    Create a new asyncio Redis client.

    Not cached: each pub/sub transport owns its connection so closing one
    never affects another.
    """
    return aioredis.from_url(url or get_settings().REDIS_URL, decode_responses=True)


def ensure_stream_group(
    client: redis.Redis,
    stream_name: str,
    group_name: str,
    start_id: str = "0",
) -> bool:
    """
    Ensure a consumer group exists for a stream.

    Creates the group if it doesn't exist. Safe to call multiple times.

    Args:
        client: Redis client
        stream_name: Name of the Redis stream
        group_name: Name of the consumer group
        start_id: ID from which to start reading ("0" = all, "$" = new only)

    Returns:
        True if group was created, False if it already existed
    """
    try:
        client.xgroup_create(stream_name, group_name, id=start_id, mkstream=True)
        return True
    except redis.ResponseError as e:
        if "BUSYGROUP" in str(e):
            # Group already exists
            return False
        raise
