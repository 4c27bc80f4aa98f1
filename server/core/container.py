"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.cache import CacheService
from core.cleanup import CleanupService
from services.cache_warmer import UsernameCacheWarmer
from services.todo import TodoService
from services.token import TokenService
from services.user_auth import UserAuthService
from services.username import UsernameAvailabilityService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Database (source of truth, also backs the SQLite cache)
    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Cache service (Redis when configured and reachable, SQLite otherwise)
    cache = providers.Singleton(
        CacheService,
        settings=settings,
        database=database
    )

    cleanup_service = providers.Singleton(
        CleanupService,
        cache=cache,
        settings=settings
    )

    # Services
    token_service = providers.Singleton(
        TokenService,
        secret_key=settings.provided.jwt_secret_key,
        expiration_hours=settings.provided.jwt_expiration_hours
    )

    username_service = providers.Factory(
        UsernameAvailabilityService,
        cache=cache,
        database=database,
        settings=settings
    )

    cache_warmer = providers.Factory(
        UsernameCacheWarmer,
        cache=cache,
        database=database,
        settings=settings
    )

    user_auth_service = providers.Factory(
        UserAuthService,
        database=database,
        tokens=token_service,
        usernames=username_service,
        settings=settings
    )

    todo_service = providers.Factory(
        TodoService,
        database=database
    )


# Global container instance
container = Container()
