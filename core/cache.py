"""
Caching System for the Roast API.

Every GitHub response the backend fetches goes through this cache, so repeated
roasts of the same user within the TTL cost no upstream quota. The cache lives
in process memory and is bounded both in time (per-entry TTL) and in size (a
fixed number of keys with Least Recently Used eviction).

Key Components:
- CacheBackend (ABC): The async interface a cache storage must provide.
- MemoryCacheBackend: A dictionary-backed implementation with TTL expiry, LRU
  eviction and hit/miss/eviction counters. Access is serialized by an
  `asyncio.Lock`.
- CacheManager: A facade used by the providers. It never lets a cache failure
  break a request, offers "get-or-set", and runs the periodic purge of expired
  entries.
- `cache_key`: Builds the `endpoint_JSON(params)` key used for GitHub calls.

Architectural Design:
- Strategy Pattern: The storage sits behind `CacheBackend`, so the manager and
  its callers do not depend on the in-memory implementation.
- Freshness Invariant: `get` checks expiry on every read, so a hit never
  returns a value older than its TTL even if the purge task has not run yet.
- Injected Clock: Time is read through a callable, which lets tests move time
  forward without sleeping.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with metadata"""

    value: Any
    created_at: float
    expires_at: Optional[float] = None
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        """Check if cache entry has expired"""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class CacheBackend(ABC):
    """Abstract base class for cache backends"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get cache entry value by key"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set cache entry with optional TTL"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete cache entry"""

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all cache entries"""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Drop every expired entry and return how many were dropped"""

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        """Get cache statistics"""


class MemoryCacheBackend(CacheBackend):
    """In-memory cache backend with TTL expiry and LRU eviction"""

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: Optional[int] = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self.cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.misses += 1
                logger.debug(f"Cache miss for key: {key}")
                return None

            if entry.is_expired(self._clock()):
                del self.cache[key]
                self.expirations += 1
                self.misses += 1
                logger.debug(f"Cache expired for key: {key}")
                return None

            entry.access_count += 1
            self.cache.move_to_end(key)
            self.hits += 1
            logger.debug(f"Cache hit for key: {key}")
            return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._lock:
            now = self._clock()
            if ttl is None:
                ttl = self.default_ttl
            expires_at = now + ttl if ttl else None

            if key in self.cache:
                del self.cache[key]
            else:
                self._ensure_capacity()

            self.cache[key] = CacheEntry(
                value=value, created_at=now, expires_at=expires_at
            )
            logger.debug(f"Cache set for key: {key}, TTL: {ttl}")
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self.cache:
                del self.cache[key]
                logger.debug(f"Cache deleted for key: {key}")
                return True
            return False

    async def clear(self) -> bool:
        async with self._lock:
            self.cache.clear()
            logger.info("Cache cleared")
            return True

    async def purge_expired(self) -> int:
        async with self._lock:
            now = self._clock()
            expired = [k for k, entry in self.cache.items() if entry.is_expired(now)]
            for key in expired:
                del self.cache[key]
            self.expirations += len(expired)
            if expired:
                logger.debug(f"Purged {len(expired)} expired cache entries")
            return len(expired)

    async def stats(self) -> Dict[str, Any]:
        async with self._lock:
            total_requests = self.hits + self.misses
            hit_rate = (self.hits / total_requests) if total_requests > 0 else 0.0

            return {
                "backend": "memory",
                "total_keys": len(self.cache),
                "max_size": self.max_size,
                "default_ttl": self.default_ttl,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(hit_rate, 4),
                "evictions": self.evictions,
                "expirations": self.expirations,
            }

    def _ensure_capacity(self) -> None:
        """Evict least recently used entries until there is room for one more"""
        while len(self.cache) >= self.max_size:
            lru_key, _ = self.cache.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Evicted LRU key: {lru_key}")


class CacheManager:
    """High-level cache manager"""

    def __init__(self, backend: CacheBackend):
        self.backend = backend
        self.logger = get_logger(f"{__name__}.CacheManager")
        self._purge_task: Optional[asyncio.Task] = None

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        try:
            return await self.backend.get(key)
        except Exception as e:
            self.logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache"""
        try:
            return await self.backend.set(key, value, ttl)
        except Exception as e:
            self.logger.error(f"Cache set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete value from cache"""
        try:
            return await self.backend.delete(key)
        except Exception as e:
            self.logger.error(f"Cache delete error for key {key}: {e}")
            return False

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Get value from cache or compute it with `factory`.

        Errors raised by the factory propagate to the caller and nothing is
        cached for that key.
        """
        value = await self.get(key)
        if value is not None:
            return value

        value = await factory()
        await self.set(key, value, ttl)
        return value

    async def stats(self) -> Dict[str, Any]:
        return await self.backend.stats()

    async def health_check(self) -> Dict[str, Any]:
        """Perform cache health check"""
        try:
            test_key = "__health_check__"
            await self.set(test_key, "ok", ttl=1)
            retrieved = await self.get(test_key)
            await self.delete(test_key)
            stats = await self.backend.stats()

            return {
                "status": "healthy" if retrieved == "ok" else "unhealthy",
                "backend_type": stats.get("backend", "unknown"),
                "stats": stats,
            }
        except Exception as e:
            self.logger.error(f"Cache health check failed: {e}")
            return {"status": "unhealthy", "backend_type": "unknown", "error": str(e)}

    def start_purging(self, interval: float = 60.0) -> asyncio.Task:
        """Start the background task that drops expired entries"""
        if self._purge_task is None or self._purge_task.done():
            self._purge_task = asyncio.create_task(self._purge_loop(interval))
        return self._purge_task

    async def stop_purging(self) -> None:
        task, self._purge_task = self._purge_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _purge_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.backend.purge_expired()
            except Exception as e:
                self.logger.error(f"Cache purge failed: {e}")


def cache_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Generate the cache key for an endpoint and its query parameters"""
    return f"{endpoint}_{json.dumps(params or {}, sort_keys=True, separators=(',', ':'))}"
