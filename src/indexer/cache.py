"""Key/value cache with per-key TTL: Redis when reachable, memory otherwise.

Every write also lands in the in-memory map so a Redis outage mid-run
degrades to the last values this process wrote instead of empty reads.
Entries are only ever replaced whole.
"""

import fnmatch
import json
import time
from collections.abc import Callable
from typing import Any

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError


class MemoryCache:
    """In-process TTL map. ``clock`` is injectable for tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: str, ttl: float) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def keys(self, pattern: str = "*") -> list[str]:
        now = self._clock()
        return [
            key for key, (_, expires_at) in self._entries.items()
            if expires_at > now and fnmatch.fnmatchcase(key, pattern)
        ]

    def flush(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self.keys())


class CacheService:
    def __init__(self, redis: Redis | None = None, memory: MemoryCache | None = None) -> None:
        self._redis = redis
        self._redis_ok = redis is not None
        self._memory = memory or MemoryCache()

    @property
    def using_redis(self) -> bool:
        return self._redis is not None and self._redis_ok

    async def connect(self) -> bool:
        """Ping Redis once. Returns True if Redis will be used."""
        if self._redis is None:
            logger.info("[CACHE] No Redis configured, using in-memory cache")
            return False
        try:
            await self._redis.ping()
            self._redis_ok = True
            logger.info("[CACHE] Redis connected")
        except (RedisError, OSError) as e:
            self._redis_ok = False
            logger.warning(f"[CACHE] Redis unavailable ({e}), using in-memory fallback")
        return self._redis_ok

    def _redis_failed(self, op: str, e: Exception) -> None:
        logger.warning(f"[CACHE] Redis {op} failed ({type(e).__name__}: {e}), falling back to memory")

    async def get(self, key: str) -> str | None:
        if self.using_redis:
            try:
                value = await self._redis.get(key)
                if value is not None:
                    return value
            except (RedisError, OSError) as e:
                self._redis_failed("get", e)
            else:
                return None
        return self._memory.get(key)

    async def set(self, key: str, value: str, ttl: float) -> None:
        self._memory.set(key, value, ttl)
        if self.using_redis:
            try:
                await self._redis.set(key, value, px=max(int(ttl * 1000), 1))
            except (RedisError, OSError) as e:
                self._redis_failed("set", e)

    async def delete(self, key: str) -> None:
        self._memory.delete(key)
        if self.using_redis:
            try:
                await self._redis.delete(key)
            except (RedisError, OSError) as e:
                self._redis_failed("delete", e)

    async def keys(self, pattern: str = "*") -> list[str]:
        if self.using_redis:
            try:
                return [key async for key in self._redis.scan_iter(match=pattern)]
            except (RedisError, OSError) as e:
                self._redis_failed("scan", e)
        return self._memory.keys(pattern)

    async def flush(self, pattern: str = "*") -> int:
        """Delete every key matching ``pattern``. Returns the number removed."""
        keys = await self.keys(pattern)
        for key in keys:
            await self.delete(key)
        for key in self._memory.keys(pattern):
            self._memory.delete(key)
        return len(keys)

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"[CACHE] Corrupt entry {key}, dropping")
            await self.delete(key)
            return None

    async def set_json(self, key: str, value: Any, ttl: float) -> None:
        await self.set(key, json.dumps(value, default=str), ttl)

    async def status(self) -> dict[str, Any]:
        return {
            "backend": "redis" if self.using_redis else "memory",
            "keys": len(await self.keys()),
            "memory_keys": len(self._memory),
        }

    async def close(self) -> None:
        if self._redis is not None:
            try:
                await self._redis.aclose()
            except (RedisError, OSError) as e:
                logger.debug(f"[CACHE] Redis close failed: {e}")
