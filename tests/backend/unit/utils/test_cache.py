"""Unit tests for TTLCache."""

import time

import pytest

from utils.cache import TTLCache


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(max_size=3, default_ttl=1.0)


@pytest.mark.asyncio
async def test_cache_set_and_get(cache: TTLCache) -> None:
    await cache.set("data-steward", "prompt")

    assert await cache.get("data-steward") == "prompt"


@pytest.mark.asyncio
async def test_cache_get_miss(cache: TTLCache) -> None:
    assert await cache.get("nonexistent") is None
    assert cache.stats()["misses"] == 1


@pytest.mark.asyncio
async def test_cache_expiration() -> None:
    cache = TTLCache(max_size=5, default_ttl=0.01)  # 10ms TTL
    await cache.set("key1", "value1")
    assert await cache.get("key1") == "value1"

    time.sleep(0.02)

    assert await cache.get("key1") is None


@pytest.mark.asyncio
async def test_cache_evicts_least_recently_used(cache: TTLCache) -> None:
    await cache.set("a", 1)
    await cache.set("b", 2)
    await cache.set("c", 3)
    await cache.get("a")

    await cache.set("d", 4)

    assert await cache.get("b") is None
    assert await cache.get("a") == 1
    assert cache.stats()["size"] == 3


@pytest.mark.asyncio
async def test_cache_delete(cache: TTLCache) -> None:
    await cache.set("a", 1)

    assert await cache.delete("a") is True
    assert await cache.delete("a") is False
