"""Shared test fixtures."""

import pytest

from src.indexer.cache import CacheService, MemoryCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock: FakeClock) -> MemoryCache:
    return MemoryCache(clock=clock)


@pytest.fixture
def cache(memory_cache: MemoryCache) -> CacheService:
    """Cache service with no Redis: every read and write hits memory."""
    return CacheService(memory=memory_cache)
