"""
Redis client manager for the usage ledger.

Provides:
- Async Redis client with connection pooling
- Singleton pattern for resource efficiency
- fakeredis in the test environment
"""

import os
from typing import Optional

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

# Global Redis client instance (singleton)
_redis_client: Optional[redis.Redis] = None


def _redact(redis_url: str) -> str:
    return redis_url.split("@")[-1] if "@" in redis_url else redis_url.split("//")[-1]


async def get_redis_client(redis_url: Optional[str] = None, use_fake: Optional[bool] = None) -> redis.Redis:
    """
    Get or create the async Redis client.

    Args:
        redis_url: Connection URL; defaults to ``LEGALCHAT_REDIS_URL``.
        use_fake: If True, use fakeredis. If None, auto-detect from env.

    Returns:
        Redis client instance

    Raises:
        RuntimeError: No Redis URL is configured outside the test environment.
        redis.ConnectionError: The server could not be reached.
    """
    global _redis_client

    if use_fake is None:
        use_fake = os.getenv("LEGALCHAT_APP_ENV") == "test"

    if _redis_client is not None:
        return _redis_client

    if use_fake:
        from fakeredis import aioredis as fakeredis

        _redis_client = fakeredis.FakeRedis(decode_responses=True)
        logger.info("Using fakeredis for testing")
        return _redis_client

    redis_url = redis_url or os.getenv("LEGALCHAT_REDIS_URL")
    if not redis_url:
        raise RuntimeError("Redis URL not configured; set LEGALCHAT_REDIS_URL")

    client = redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
        socket_timeout=5,
        socket_connect_timeout=5,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except redis.ConnectionError as e:
        logger.error("Redis connection failed", error=str(e), redis_url=_redact(redis_url))
        await client.aclose()
        raise

    _redis_client = client
    logger.info("Redis client initialized successfully", url=_redact(redis_url), max_connections=20)
    return _redis_client


async def close_redis_client():
    """Close Redis client connection."""
    global _redis_client

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
            logger.info("Redis client closed")
        except Exception as e:
            logger.warning("Error closing Redis client", error=str(e))
        finally:
            _redis_client = None
