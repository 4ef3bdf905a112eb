"""
Shared Redis connection pool for ``STORE_BACKEND=redis``.

One ``ConnectionPool`` per process; ``RedisBackend`` borrows a
client for each operation and hands it back with ``close()``.
The pool is torn down on application shutdown.
"""

from __future__ import annotations

import logging

import redis

from app.core.config import get_settings

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None


def get_redis_pool() -> redis.ConnectionPool:
    """Build the pool from settings on first use."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            health_check_interval=30,
        )
        logger.info("Opened Redis pool for %s", settings.REDIS_URL)
    return _pool


def get_redis_client() -> redis.Redis:
    """Client bound to the shared pool.  Call ``close()`` when done."""
    return redis.Redis(connection_pool=get_redis_pool())


def close_redis_pool() -> None:
    """Disconnect every pooled connection and forget the pool."""
    global _pool
    if _pool is None:
        return
    _pool.disconnect()
    _pool = None
    logger.info("Closed Redis pool")
