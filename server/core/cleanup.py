"""Periodic purge of expired cache entries.

Redis expires keys natively; the SQLite table and the in-process store only
drop expired entries lazily on read, so this sweep keeps them bounded.
"""
import asyncio
from typing import Optional, TYPE_CHECKING

from core.exceptions import CacheUnavailableError
from core.logging import get_logger

if TYPE_CHECKING:
    from core.config import Settings
    from core.cache import CacheService

logger = get_logger(__name__)


class CleanupService:
    """Background task that periodically purges expired cache entries."""

    def __init__(self, cache: "CacheService", settings: "Settings"):
        self.cache = cache
        self.settings = settings
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the cleanup background task. No-op when Redis is the backend."""
        if self._running or self.cache.is_redis_available():
            return
        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info("Cleanup service started", interval=self.settings.cache_cleanup_interval)

    async def stop(self) -> None:
        """Stop the cleanup service gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.settings.cache_cleanup_interval)
            try:
                await self.run_once()
            except CacheUnavailableError as e:
                logger.warning("Failed to cleanup expired cache", error=str(e))

    async def run_once(self) -> int:
        """Purge expired entries once and return the count removed."""
        removed = await self.cache.purge_expired()
        if removed > 0:
            logger.info("Cleanup completed", expired_cache=removed)
        return removed
