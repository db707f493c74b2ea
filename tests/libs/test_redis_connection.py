"""Tests for the Redis client manager."""

import pytest

from libs.caching import redis_client as redis_module
from libs.caching.redis_client import close_redis_client, get_redis_client


@pytest.fixture(autouse=True)
async def reset_singleton():
    await close_redis_client()
    yield
    await close_redis_client()


@pytest.mark.asyncio
async def test_fakeredis_used_in_test_env():
    client = await get_redis_client()

    await client.set("key", "value")
    assert await client.get("key") == "value"


@pytest.mark.asyncio
async def test_singleton_reused():
    first = await get_redis_client(use_fake=True)
    second = await get_redis_client(use_fake=True)
    assert first is second


@pytest.mark.asyncio
async def test_missing_url_outside_tests(monkeypatch):
    monkeypatch.delenv("LEGALCHAT_REDIS_URL", raising=False)

    with pytest.raises(RuntimeError, match="Redis URL not configured"):
        await get_redis_client(use_fake=False)


@pytest.mark.asyncio
async def test_close_resets_singleton():
    await get_redis_client(use_fake=True)
    await close_redis_client()
    assert redis_module._redis_client is None
