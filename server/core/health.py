"""Health check utilities for the /health endpoint."""
import time
from typing import Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database
    from core.cache import CacheService

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


async def get_health_status(
    database: "Database",
    cache: "CacheService",
    settings: "Settings"
) -> Dict[str, Any]:
    """Get health status for the /health endpoint.

    The database is required for "healthy". The cache only degrades the
    status, since every cache read falls back to the database.
    """
    db_healthy = await database.ping()
    cache_healthy = await cache.ping() if settings.enable_cache else None

    if not db_healthy:
        overall_status = "unhealthy"
    elif cache_healthy is False:
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return {
        "status": overall_status,
        "uptime_seconds": round(get_uptime(), 1),
        "checks": {
            "database": db_healthy,
            "cache": cache_healthy,
        },
        "cache": {
            "enabled": settings.enable_cache,
            "backend": cache.backend_name,
        },
    }
