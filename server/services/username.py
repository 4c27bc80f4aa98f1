"""Username availability checks backed by the cache (cache-aside)."""

from core.cache import CacheService
from core.config import Settings
from core.database import Database
from core.exceptions import CacheUnavailableError
from core.logging import get_logger
from constants import username_taken_key

logger = get_logger(__name__)


class UsernameAvailabilityService:
    """Two-tier username lookup: cache first, users table on miss.

    A cached marker means "taken". Absence means "unknown", so a miss or an
    unreachable cache always falls through to the database. "Available" is
    never cached, since the name can be claimed moments later. The unique
    index on users.username remains the authority for racing registrations.
    """

    def __init__(self, cache: CacheService, database: Database, settings: Settings):
        self.cache = cache
        self.database = database
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.enable_cache

    async def is_available(self, username: str) -> bool:
        """Report whether a username can be claimed.

        Database errors propagate; cache errors never do.
        """
        key = username_taken_key(username)
        cache_usable = self.enabled

        if self.enabled:
            lookup = await self.cache.get(key)
            if lookup.hit:
                return False
            if lookup.unavailable:
                cache_usable = False
                logger.info("Cache unavailable, checking username against database", username=username)

        existing = await self.database.get_user_by_username(username)
        if existing is None:
            return True

        # Taken but not cached yet; repopulate so the next check is a hit
        if cache_usable:
            await self.mark_taken(username)
        return False

    async def mark_taken(self, username: str) -> None:
        """Record a claimed username. Best-effort."""
        if not self.enabled:
            return
        try:
            await self.cache.set(username_taken_key(username), True, ttl=self.settings.username_cache_ttl)
        except CacheUnavailableError as e:
            logger.warning("Could not cache username marker", username=username, error=str(e))

    async def release(self, username: str) -> None:
        """Forget a username marker after the name is freed. Best-effort."""
        if not self.enabled:
            return
        try:
            await self.cache.delete(username_taken_key(username))
        except CacheUnavailableError as e:
            logger.warning("Could not invalidate username marker", username=username, error=str(e))
