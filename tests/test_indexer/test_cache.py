"""Tests for the TTL cache service."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.indexer.cache import CacheService, MemoryCache


class TestMemoryCache:
    def test_expiry(self, memory_cache: MemoryCache, clock) -> None:
        memory_cache.set("k", "v", ttl=10)
        clock.advance(9)
        assert memory_cache.get("k") == "v"
        clock.advance(1)
        assert memory_cache.get("k") is None

    def test_keys_pattern_skips_expired(self, memory_cache: MemoryCache, clock) -> None:
        memory_cache.set("launch:a", "1", ttl=10)
        memory_cache.set("launch:b", "2", ttl=1)
        memory_cache.set("stats:global", "3", ttl=10)
        clock.advance(2)
        assert memory_cache.keys("launch:*") == ["launch:a"]
        assert len(memory_cache) == 2

    def test_overwrite_resets_ttl(self, memory_cache: MemoryCache, clock) -> None:
        memory_cache.set("k", "old", ttl=5)
        clock.advance(4)
        memory_cache.set("k", "new", ttl=5)
        clock.advance(4)
        assert memory_cache.get("k") == "new"


class TestTtlIndependence:
    @pytest.mark.asyncio
    async def test_each_key_expires_on_its_own(self, cache: CacheService, clock) -> None:
        await cache.set_json("launches:trending", [1], ttl=10)
        clock.advance(0.5)
        await cache.set_json("launches:recent", [2], ttl=30)

        clock.advance(10)  # past trending's TTL, within recent's
        assert await cache.get_json("launches:trending") is None
        assert await cache.get_json("launches:recent") == [2]

        clock.advance(20)
        assert await cache.get_json("launches:recent") is None


class TestCacheService:
    @pytest.mark.asyncio
    async def test_json_round_trip(self, cache: CacheService) -> None:
        await cache.set_json("stats:global", {"totalLaunches": 3}, ttl=60)
        assert await cache.get_json("stats:global") == {"totalLaunches": 3}
        assert await cache.get_json("missing") is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_dropped(self, cache: CacheService) -> None:
        await cache.set("launch:x", "{not json", ttl=10)
        assert await cache.get_json("launch:x") is None
        assert await cache.get("launch:x") is None

    @pytest.mark.asyncio
    async def test_flush_by_pattern(self, cache: CacheService) -> None:
        await cache.set("launch:a", "1", ttl=10)
        await cache.set("launch:b", "2", ttl=10)
        await cache.set("stats:global", "3", ttl=10)
        assert await cache.flush("launch:*") == 2
        assert await cache.keys() == ["stats:global"]

    @pytest.mark.asyncio
    async def test_status_without_redis(self, cache: CacheService) -> None:
        assert await cache.connect() is False
        await cache.set("a", "1", ttl=10)
        status = await cache.status()
        assert status["backend"] == "memory"
        assert status["keys"] == 1


class TestRedisFallback:
    @pytest.mark.asyncio
    async def test_uses_redis_when_reachable(self, memory_cache: MemoryCache) -> None:
        redis = MagicMock()
        redis.ping = AsyncMock(return_value=True)
        redis.set = AsyncMock()
        redis.get = AsyncMock(return_value='{"x": 1}')
        cache = CacheService(redis, memory_cache)

        assert await cache.connect() is True
        await cache.set_json("launch:a", {"x": 1}, ttl=10)
        redis.set.assert_awaited_once_with("launch:a", '{"x": 1}', px=10_000)
        assert await cache.get_json("launch:a") == {"x": 1}
        assert memory_cache.get("launch:a") == '{"x": 1}'

    @pytest.mark.asyncio
    async def test_unreachable_redis_uses_memory(self, memory_cache: MemoryCache) -> None:
        redis = MagicMock()
        redis.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        redis.set = AsyncMock()
        cache = CacheService(redis, memory_cache)

        assert await cache.connect() is False
        await cache.set("k", "v", ttl=10)
        redis.set.assert_not_called()
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_redis_error_mid_run_falls_back(self, memory_cache: MemoryCache) -> None:
        redis = MagicMock()
        redis.ping = AsyncMock(return_value=True)
        redis.set = AsyncMock()
        redis.get = AsyncMock(side_effect=RedisConnectionError("gone"))
        cache = CacheService(redis, memory_cache)
        await cache.connect()

        await cache.set("k", "v", ttl=10)
        assert await cache.get("k") == "v"
