"""Cache service with Redis (shared), SQLite, or in-process backend.

Reads return a tri-state CacheLookup so callers can tell a miss apart from an
unreachable backend and fall back to the database on either. Writes raise
CacheUnavailableError instead of failing silently.
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import redis.asyncio as redis

from core.cache_backends import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
    SQLiteCacheBackend,
)
from core.config import Settings
from core.exceptions import CacheUnavailableError
from core.logging import get_logger, log_cache_operation

if TYPE_CHECKING:
    from core.database import Database

logger = get_logger(__name__)


class CacheStatus(str, Enum):
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read."""

    status: CacheStatus
    value: Any = None

    @property
    def hit(self) -> bool:
        return self.status is CacheStatus.HIT

    @property
    def miss(self) -> bool:
        return self.status is CacheStatus.MISS

    @property
    def unavailable(self) -> bool:
        return self.status is CacheStatus.UNAVAILABLE


MISS = CacheLookup(CacheStatus.MISS)
UNAVAILABLE = CacheLookup(CacheStatus.UNAVAILABLE)


class CacheService:
    """Async cache service with pluggable backend.

    Backend selection:
    - Redis: when REDIS_ENABLED=true, REDIS_URL is set, and the server answers PING
    - SQLite: when Redis is off or unreachable and a database is available
    - Memory: when neither is available
    """

    def __init__(
        self,
        settings: Settings,
        database: Optional["Database"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.database = database
        self._clock = clock
        self.backend: CacheBackend = self._local_backend()

    def _local_backend(self) -> CacheBackend:
        if self.database is not None:
            return SQLiteCacheBackend(self.database, clock=self._clock)
        return MemoryCacheBackend(clock=self._clock)

    @property
    def backend_name(self) -> str:
        return self.backend.name

    async def startup(self):
        """Initialize cache connection."""
        if self.settings.redis_enabled and self.settings.redis_url:
            client = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True
            )
            try:
                await client.ping()
            except (redis.RedisError, OSError) as e:
                logger.warning("Redis connection failed, falling back",
                               error=str(e), fallback=self.backend.name)
                await client.aclose()
                return

            self.backend = RedisCacheBackend(client)
            logger.info("Redis cache initialized", url=self.settings.redis_url)
        else:
            logger.info("Using local cache backend", backend=self.backend.name,
                        redis_enabled=self.settings.redis_enabled)

    async def shutdown(self):
        """Close cache connections and flush in-process entries."""
        await self.backend.close()
        logger.info("Cache backend closed", backend=self.backend.name)

    async def get(self, key: str) -> CacheLookup:
        """Get value from cache. Never raises."""
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            logger.warning("Cache get failed", key=key, backend=self.backend.name, error=str(e))
            return UNAVAILABLE

        if raw is None:
            log_cache_operation(logger, "get", key, hit=False, backend=self.backend.name)
            return MISS

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Cache value undecodable", key=key, backend=self.backend.name, error=str(e))
            return UNAVAILABLE

        log_cache_operation(logger, "get", key, hit=True, backend=self.backend.name)
        return CacheLookup(CacheStatus.HIT, value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value in cache. Raises CacheUnavailableError on backend failure."""
        ttl = ttl or self.settings.cache_ttl
        serialized = json.dumps(value, default=str)
        try:
            await self.backend.set(key, serialized, ttl)
        except Exception as e:
            raise CacheUnavailableError(self.backend.name, f"set failed: {e}", keys=[key]) from e
        log_cache_operation(logger, "set", key, ttl=ttl, backend=self.backend.name)

    async def set_many(self, mapping: Dict[str, Any], ttl: Optional[int] = None) -> int:
        """Set all entries with one shared TTL. Returns the number written.

        The backend applies the batch atomically; on failure the whole batch
        is reported through CacheUnavailableError.keys.
        """
        if not mapping:
            return 0
        ttl = ttl or self.settings.cache_ttl
        serialized = {key: json.dumps(value, default=str) for key, value in mapping.items()}
        try:
            await self.backend.set_many(serialized, ttl)
        except Exception as e:
            raise CacheUnavailableError(
                self.backend.name, f"batch set of {len(serialized)} keys failed: {e}",
                keys=serialized.keys()
            ) from e
        logger.debug("Cache batch set", count=len(serialized), ttl=ttl, backend=self.backend.name)
        return len(serialized)

    async def delete(self, key: str) -> bool:
        """Delete value from cache. Raises CacheUnavailableError on backend failure."""
        try:
            deleted = await self.backend.delete(key)
        except Exception as e:
            raise CacheUnavailableError(self.backend.name, f"delete failed: {e}", keys=[key]) from e
        log_cache_operation(logger, "delete", key, deleted=deleted, backend=self.backend.name)
        return deleted

    async def ping(self) -> bool:
        try:
            return await self.backend.ping()
        except Exception as e:
            logger.warning("Cache ping failed", backend=self.backend.name, error=str(e))
            return False

    async def purge_expired(self) -> int:
        """Remove expired entries from backends without native expiry."""
        try:
            return await self.backend.purge_expired()
        except Exception as e:
            raise CacheUnavailableError(self.backend.name, f"purge failed: {e}") from e

    def is_redis_available(self) -> bool:
        """Check if Redis is the active backend."""
        return isinstance(self.backend, RedisCacheBackend)
