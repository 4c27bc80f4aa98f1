import os
from datetime import datetime, timezone

# Settings are read from the environment at import time of main.py
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-chars")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio

from core.cache import CacheService
from core.config import Settings
from core.database import Database


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def as_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=timezone.utc)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret_key="test-secret-key-that-is-at-least-32-chars",
        jwt_expiration_hours=1,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        enable_cache=True,
        redis_enabled=False,
        username_cache_ttl=3600,
        cache_ttl=600,
    )


@pytest.fixture
def memory_cache(settings, clock):
    """Cache with the in-process backend and a controllable clock."""
    return CacheService(settings, clock=clock)


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()
