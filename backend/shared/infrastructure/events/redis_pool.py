"""
Shared Redis client for the order feed and the health probe.

One client, with its own connection pool, per process. Building it never
awaits, so on the single event loop the lazy creation needs no lock.
"""

from __future__ import annotations

import redis.asyncio as redis

from shared.config.logging import get_logger
from shared.config.settings import Settings, settings

logger = get_logger(__name__)

_client: redis.Redis | None = None


def build_redis_client(config: Settings = settings) -> redis.Redis:
    """Client sized for one terminal: the feed listener, publishers and probes."""
    return redis.from_url(
        config.redis_url,
        max_connections=config.redis_pool_max_connections,
        decode_responses=True,
        socket_connect_timeout=config.redis_socket_timeout,
        socket_timeout=config.redis_socket_timeout,
        health_check_interval=30,
    )


async def get_redis_pool() -> redis.Redis:
    global _client
    if _client is None:
        _client = build_redis_client()
        logger.info("Redis client created", max_connections=settings.redis_pool_max_connections)
    return _client


async def close_redis_pool() -> None:
    """Close the shared client on shutdown; the next get_redis_pool() builds a new one."""
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
        logger.info("Redis client closed")
