"""Startup preload of username markers into the cache.

Runs once per process before requests are served. A sentinel key gates the
full-table scan so restarts within one TTL window do not rescan; the sentinel
expires with the markers, which bounds staleness to the TTL.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

from core.cache import CacheService
from core.config import Settings
from core.database import Database
from core.exceptions import CacheUnavailableError
from core.logging import get_logger, log_execution_time
from constants import (
    USERNAME_CACHE_SENTINEL_KEY,
    USERNAME_CACHE_SENTINEL_VALUE,
    username_taken_key,
)

logger = get_logger(__name__)


class WarmStatus(str, Enum):
    DISABLED = "disabled"
    ALREADY_WARM = "already_warm"
    WARMED = "warmed"
    EMPTY = "empty"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class WarmResult:
    status: WarmStatus
    count: int = 0


class UsernameCacheWarmer:
    """Loads "username taken" markers for every existing user."""

    def __init__(self, cache: CacheService, database: Database, settings: Settings):
        self.cache = cache
        self.database = database
        self.settings = settings

    async def warm(self) -> WarmResult:
        """Preload the username cache. Never raises; failures are logged."""
        if not self.settings.enable_cache:
            logger.info("Caching is disabled. Skipping username preloading.")
            return WarmResult(WarmStatus.DISABLED)

        sentinel = await self.cache.get(USERNAME_CACHE_SENTINEL_KEY)
        if sentinel.hit:
            logger.info("Username cache already initialized. Skipping preload.")
            return WarmResult(WarmStatus.ALREADY_WARM)
        if sentinel.unavailable:
            logger.warning("Cache unavailable. Skipping username preload.")
            return WarmResult(WarmStatus.FAILED)

        logger.info("Preloading usernames into cache...")
        start = time.time()
        timeout = self.settings.username_cache_warm_timeout
        try:
            count = await asyncio.wait_for(self._preload(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Username preload timed out", timeout_seconds=timeout)
            return WarmResult(WarmStatus.TIMED_OUT)
        except CacheUnavailableError as e:
            logger.error("Error preloading usernames to cache", error=str(e), keys=len(e.keys))
            return WarmResult(WarmStatus.FAILED)
        except Exception as e:
            logger.error("Error querying for usernames to preload", error=str(e))
            return WarmResult(WarmStatus.FAILED)

        if not count:
            logger.info("No usernames found to preload.")
            return WarmResult(WarmStatus.EMPTY)

        log_execution_time(logger, "username_preload", start, time.time(), count=count)
        logger.info("Successfully preloaded usernames into the cache", count=count)
        return WarmResult(WarmStatus.WARMED, count)

    async def _preload(self) -> int:
        """Scan, bulk-write markers, then write the sentinel. Returns markers written."""
        usernames = await self.database.list_usernames()
        batch = {username_taken_key(name): True for name in usernames if name}
        if not batch:
            return 0

        ttl = self.settings.username_cache_ttl
        await self.cache.set_many(batch, ttl=ttl)
        # Sentinel only after the bulk write succeeded
        await self.cache.set(USERNAME_CACHE_SENTINEL_KEY, USERNAME_CACHE_SENTINEL_VALUE, ttl=ttl)
        return len(batch)
