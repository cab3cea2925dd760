"""
Shared Redis connection pool.

The distributed rate limiter reuses one pool per worker process.
"""
import logging
from typing import Optional

from redis import ConnectionPool, Redis

from ..config import settings

logger = logging.getLogger(__name__)

_pool: Optional[ConnectionPool] = None


def get_redis_pool() -> Optional[ConnectionPool]:
    """
    Get the shared Redis connection pool (singleton).

    Returns None if Redis cannot be reached; callers degrade to their
    local fallbacks.
    """
    global _pool

    if _pool is not None:
        return _pool

    try:
        _pool = ConnectionPool(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            max_connections=10,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        Redis(connection_pool=_pool).ping()

        logger.info(
            "Redis connection pool initialized: %s:%s/db%s",
            settings.redis_host,
            settings.redis_port,
            settings.redis_db,
        )
        return _pool

    except Exception as e:
        logger.warning(f"Failed to create Redis connection pool: {e}")
        _pool = None
        return None


def get_redis_client() -> Optional[Redis]:
    """Get a Redis client on the shared pool, or None when Redis is down."""
    pool = get_redis_pool()

    if pool is None:
        return None

    try:
        return Redis(connection_pool=pool)
    except Exception as e:
        logger.warning(f"Failed to create Redis client from pool: {e}")
        return None

