"""Cache storage interface and implementations.

Provides the key-value interface the book service uses as a look-aside
cache, with a Redis backend and an in-memory fallback.
"""

from __future__ import annotations

import fnmatch
import time
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from books_api.core.exceptions import CacheError


class CacheStorage(ABC):
    """Abstract interface for cache backends.

    Values are serialized strings. A ``ttl_seconds`` of 0 stores the value
    without expiration.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the cached value, or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        """Store a value, optionally with an expiry."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern (e.g. ``books:*``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the last operation against the backend succeeded."""

    @property
    def backend(self) -> str:
        return "unknown"


class InMemoryCacheStorage(CacheStorage):
    """Process-local cache with optional TTL support."""

    def __init__(self):
        self._data: dict[str, dict[str, Any]] = {}

    @property
    def backend(self) -> str:
        return "in-memory"

    def _expired(self, key: str) -> bool:
        expires_at = self._data[key]["expires_at"]
        if expires_at is not None and time.time() > expires_at:
            del self._data[key]
            return True
        return False

    async def get(self, key: str) -> str | None:
        if key not in self._data or self._expired(key):
            return None
        return self._data[key]["value"]

    async def set(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        expires_at = time.time() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = {"value": value, "expires_at": expires_at}

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def delete_pattern(self, pattern: str) -> int:
        matching = [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]
        return await self.delete(*matching)

    def keys(self) -> list[str]:
        """Live keys, for inspection in tests and diagnostics."""
        return [key for key in list(self._data) if not self._expired(key)]

    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True


class RedisCacheStorage(CacheStorage):
    """Redis-backed cache. Every client failure surfaces as ``CacheError``."""

    def __init__(self, redis_client, scan_count: int = 100):
        self._redis = redis_client
        self._scan_count = scan_count
        self._available = True

    @property
    def backend(self) -> str:
        return "redis"

    async def get(self, key: str) -> str | None:
        try:
            data = await self._redis.get(key)
        except Exception as e:
            self._available = False
            raise CacheError(f"Redis get failed: {e}") from e
        self._available = True
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return data

    async def set(self, key: str, value: str, ttl_seconds: int = 0) -> None:
        try:
            if ttl_seconds > 0:
                await self._redis.set(key, value, ex=ttl_seconds)
            else:
                await self._redis.set(key, value)
        except Exception as e:
            self._available = False
            raise CacheError(f"Redis set failed: {e}") from e
        self._available = True

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            removed = await self._redis.delete(*keys)
        except Exception as e:
            self._available = False
            raise CacheError(f"Redis delete failed: {e}") from e
        self._available = True
        return int(removed)

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a pattern using Redis SCAN."""
        try:
            keys = [
                key
                async for key in self._redis.scan_iter(match=pattern, count=self._scan_count)
            ]
            removed = 0
            for start in range(0, len(keys), self._scan_count):
                batch = keys[start : start + self._scan_count]
                removed += int(await self._redis.delete(*batch))
        except Exception as e:
            self._available = False
            raise CacheError(f"Redis scan failed: {e}") from e
        self._available = True
        return removed

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            self._available = True
            return True
        except Exception:
            self._available = False
            return False


async def detect_cache_storage(redis_service, environment: str) -> CacheStorage:
    """Use Redis when it answers a PING, otherwise fall back to in-memory.

    Outside production a missing or unreachable Redis degrades to a
    process-local cache; in production it is a startup failure.
    """
    client = redis_service.get_client()
    if client is not None:
        storage = RedisCacheStorage(client)
        if await storage.ping():
            logger.info("Book cache: Redis connected")
            return storage
        logger.warning("Book cache: Redis ping failed")
    if environment == "production":
        raise RuntimeError("Redis is required for the book cache in production")
    logger.warning("Book cache: using in-memory storage")
    return InMemoryCacheStorage()
