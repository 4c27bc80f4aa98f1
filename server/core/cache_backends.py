"""
Storage backends for the cache service.

Three backends with the same TTL semantics:
- Redis: shared store for multi-process deployments (native key expiry)
- SQLite: cache_entries table for single-process deployments without Redis
- Memory: in-process dict, used when neither is configured

Backends store already-serialized strings and raise on failure; the
CacheService above them owns serialization, logging, and error conversion.
"""

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

if TYPE_CHECKING:
    import redis.asyncio as redis
    from core.database import Database


class CacheBackend(ABC):
    """Abstract base class for cache storage backends."""

    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int]) -> None:
        """Insert or overwrite a single entry."""

    @abstractmethod
    async def set_many(self, entries: Dict[str, str], ttl: Optional[int]) -> None:
        """Insert or overwrite all entries atomically with one shared TTL."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove an entry. Returns whether it existed."""

    async def ping(self) -> bool:
        return True

    async def purge_expired(self) -> int:
        """Drop expired entries. Backends with native expiry return 0."""
        return 0

    async def close(self) -> None:
        pass


class MemoryCacheBackend(CacheBackend):
    """In-process TTL store. Not shared between worker processes."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}

    def _expires_at(self, ttl: Optional[int]) -> Optional[float]:
        return self._clock() + ttl if ttl else None

    async def get(self, key: str) -> Optional[str]:
        item = self._entries.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int]) -> None:
        self._entries[key] = (value, self._expires_at(ttl))

    async def set_many(self, entries: Dict[str, str], ttl: Optional[int]) -> None:
        expires_at = self._expires_at(ttl)
        self._entries.update({key: (value, expires_at) for key, value in entries.items()})

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, exp) in self._entries.items() if exp is not None and exp <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class SQLiteCacheBackend(CacheBackend):
    """Cache stored in the application database's cache_entries table."""

    name = "sqlite"

    def __init__(self, database: "Database", clock: Callable[[], float] = time.time):
        self._database = database
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        return await self._database.get_cache_entry(key, now=self._clock())

    async def set(self, key: str, value: str, ttl: Optional[int]) -> None:
        await self._database.set_cache_entries({key: value}, ttl, now=self._clock())

    async def set_many(self, entries: Dict[str, str], ttl: Optional[int]) -> None:
        # One transaction: either every entry commits or none does
        await self._database.set_cache_entries(entries, ttl, now=self._clock())

    async def delete(self, key: str) -> bool:
        return await self._database.delete_cache_entry(key)

    async def ping(self) -> bool:
        return await self._database.ping()

    async def purge_expired(self) -> int:
        return await self._database.cleanup_expired_cache(now=self._clock())


class RedisCacheBackend(CacheBackend):
    """Shared Redis store. Expiry is enforced by Redis itself."""

    name = "redis"

    def __init__(self, client: "redis.Redis"):
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int]) -> None:
        await self.client.set(key, value, ex=ttl)

    async def set_many(self, entries: Dict[str, str], ttl: Optional[int]) -> None:
        # MULTI/EXEC so a partial batch is never visible
        async with self.client.pipeline(transaction=True) as pipe:
            for key, value in entries.items():
                pipe.set(key, value, ex=ttl)
            await pipe.execute()

    async def delete(self, key: str) -> bool:
        return bool(await self.client.delete(key))

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
