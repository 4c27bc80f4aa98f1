"""Centralized constants for cache keys and route access.

Single source of truth for key names shared by the cache warmer, the
username availability check, and the auth middleware.
"""

from typing import FrozenSet, Tuple

# =============================================================================
# CACHE KEYS
# =============================================================================

# Presence alone means the username cache was warmed within the current TTL window
USERNAME_CACHE_SENTINEL_KEY = "username_cache_initialized"
USERNAME_CACHE_SENTINEL_VALUE = "true"

USERNAME_TAKEN_PREFIX = "username-taken:"


def username_taken_key(username: str) -> str:
    """Cache key for the "username is taken" marker (literal username, no normalisation)."""
    return f"{USERNAME_TAKEN_PREFIX}{username}"


# =============================================================================
# AUTH
# =============================================================================

AUTH_HEADER = "Authorization"
AUTH_SCHEME = "bearer"

# Public routes that don't require authentication
PUBLIC_PATHS: FrozenSet[str] = frozenset([
    "/",
    "/ping",
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/redoc",
])

# Path prefixes that are public
PUBLIC_PREFIXES: Tuple[str, ...] = (
    "/auth/",
)

# =============================================================================
# VALIDATION
# =============================================================================

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]{3,32}$"
PASSWORD_MIN_LENGTH = 8
