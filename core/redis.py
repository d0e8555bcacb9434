"""
Redis connection management.

Redis is optional here: it only carries change notifications between
server processes that share the same prompt directory.
"""

import logging
import time
from typing import Optional

from redis.asyncio import Redis, ConnectionPool

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

# Global connection pool
_pool: Optional[ConnectionPool] = None
_client: Optional[Redis] = None


async def init_redis(settings: Optional[Settings] = None) -> Optional[Redis]:
    """
    Initialize Redis connection pool and client.

    Returns None when Redis is disabled in settings.
    """
    global _pool, _client

    settings = settings or get_settings()
    if not settings.redis_enabled:
        logger.info("Redis disabled, change relay runs in-process only")
        return None

    _pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        decode_responses=True,
    )
    _client = Redis(connection_pool=_pool)

    try:
        await _client.ping()
        logger.info("Redis connection established successfully")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    return _client


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _pool, _client

    if _client:
        await _client.aclose()
        _client = None
        logger.info("Redis connection closed")

    if _pool:
        await _pool.disconnect()
        _pool = None


def is_redis_available() -> bool:
    """Whether init_redis() produced a client."""
    return _client is not None


async def get_redis() -> Redis:
    """
    Get Redis client instance.

    Raises:
        RuntimeError: If Redis is not initialized
    """
    if _client is None:
        raise RuntimeError("Redis is not initialized. Call init_redis() first.")
    return _client


class RedisHealthCheck:
    """Redis health check utility."""

    @staticmethod
    async def check() -> dict:
        """
        Check Redis health status.

        Returns:
            Dictionary with health status and latency
        """
        if _client is None and not get_settings().redis_enabled:
            return {"status": "disabled", "latency_ms": None}

        try:
            client = await get_redis()
            start = time.perf_counter()
            await client.ping()
            latency_ms = (time.perf_counter() - start) * 1000
            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
            }
        except RuntimeError:
            return {
                "status": "not_initialized",
                "latency_ms": None,
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "latency_ms": None,
            }
