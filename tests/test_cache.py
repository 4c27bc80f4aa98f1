"""
Cache Service Tests

Verifies TTL semantics and the tri-state read contract on the in-process and
SQLite backends, and that backend failures surface as "unavailable" on reads
and as CacheUnavailableError on writes.
"""

from unittest.mock import AsyncMock

import pytest

from core.cache import CacheService, CacheStatus
from core.cache_backends import MemoryCacheBackend, RedisCacheBackend, SQLiteCacheBackend
from core.exceptions import CacheUnavailableError


@pytest.fixture
def sqlite_cache(settings, database, clock):
    return CacheService(settings, database=database, clock=clock)


@pytest.fixture(params=["memory", "sqlite"])
def cache(request, memory_cache, sqlite_cache):
    if request.param == "memory":
        return memory_cache
    return sqlite_cache


class TestBackendSelection:

    @pytest.mark.unit
    def test_memory_without_database(self, memory_cache):
        assert isinstance(memory_cache.backend, MemoryCacheBackend)
        assert memory_cache.backend_name == "memory"
        assert memory_cache.is_redis_available() is False

    @pytest.mark.asyncio
    async def test_sqlite_with_database(self, sqlite_cache):
        assert isinstance(sqlite_cache.backend, SQLiteCacheBackend)

    @pytest.mark.asyncio
    async def test_unreachable_redis_falls_back(self, settings, clock, monkeypatch):
        settings = settings.model_copy(update={"redis_enabled": True, "redis_url": "redis://localhost:1/0"})
        client = AsyncMock()
        client.ping.side_effect = ConnectionError("refused")
        monkeypatch.setattr("core.cache.redis.from_url", lambda *a, **kw: client)

        cache = CacheService(settings, clock=clock)
        await cache.startup()

        assert cache.backend_name == "memory"
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reachable_redis_selected(self, settings, clock, monkeypatch):
        settings = settings.model_copy(update={"redis_enabled": True, "redis_url": "redis://localhost:6379/0"})
        client = AsyncMock()
        client.ping.return_value = True
        monkeypatch.setattr("core.cache.redis.from_url", lambda *a, **kw: client)

        cache = CacheService(settings, clock=clock)
        await cache.startup()

        assert isinstance(cache.backend, RedisCacheBackend)
        assert cache.is_redis_available()


class TestTTL:

    @pytest.mark.asyncio
    async def test_get_within_ttl_hits(self, cache, clock):
        await cache.set("k", "v", ttl=60)
        clock.advance(59)
        lookup = await cache.get("k")
        assert lookup.status is CacheStatus.HIT
        assert lookup.value == "v"

    @pytest.mark.asyncio
    async def test_get_after_ttl_misses(self, cache, clock):
        await cache.set("k", "v", ttl=60)
        clock.advance(60)
        lookup = await cache.get("k")
        assert lookup.miss
        assert lookup.value is None

    @pytest.mark.asyncio
    async def test_absent_key_misses(self, cache):
        assert (await cache.get("nope")).status is CacheStatus.MISS

    @pytest.mark.asyncio
    async def test_overwrite_replaces_value_and_ttl(self, cache, clock):
        await cache.set("k", "old", ttl=10)
        clock.advance(5)
        await cache.set("k", {"new": True}, ttl=100)
        clock.advance(50)
        lookup = await cache.get("k")
        assert lookup.hit and lookup.value == {"new": True}

    @pytest.mark.asyncio
    async def test_default_ttl_from_settings(self, cache, clock, settings):
        await cache.set("k", 1)
        clock.advance(settings.cache_ttl - 1)
        assert (await cache.get("k")).hit
        clock.advance(1)
        assert (await cache.get("k")).miss


class TestSetMany:

    @pytest.mark.asyncio
    async def test_all_entries_readable(self, cache):
        written = await cache.set_many({"k1": "v1", "k2": True}, ttl=60)
        assert written == 2
        assert (await cache.get("k1")).value == "v1"
        assert (await cache.get("k2")).value is True

    @pytest.mark.asyncio
    async def test_shared_ttl(self, cache, clock):
        await cache.set_many({"k1": 1, "k2": 2}, ttl=30)
        clock.advance(30)
        assert (await cache.get("k1")).miss
        assert (await cache.get("k2")).miss

    @pytest.mark.asyncio
    async def test_empty_mapping_is_noop(self, cache):
        assert await cache.set_many({}, ttl=30) == 0


class TestDeleteAndPurge:

    @pytest.mark.asyncio
    async def test_delete(self, cache):
        await cache.set("k", "v", ttl=60)
        assert await cache.delete("k") is True
        assert (await cache.get("k")).miss
        assert await cache.delete("k") is False

    @pytest.mark.asyncio
    async def test_purge_expired_keeps_live_entries(self, cache, clock):
        await cache.set("short", 1, ttl=10)
        await cache.set("long", 1, ttl=1000)
        clock.advance(11)
        assert await cache.purge_expired() == 1
        assert (await cache.get("long")).hit


class FailingBackend(MemoryCacheBackend):
    name = "failing"

    async def get(self, key):
        raise ConnectionError("backend down")

    async def set(self, key, value, ttl):
        raise ConnectionError("backend down")

    async def set_many(self, entries, ttl):
        raise ConnectionError("backend down")

    async def delete(self, key):
        raise ConnectionError("backend down")


class TestUnavailable:

    @pytest.fixture
    def broken_cache(self, memory_cache):
        memory_cache.backend = FailingBackend()
        return memory_cache

    @pytest.mark.asyncio
    async def test_get_reports_unavailable_not_miss(self, broken_cache):
        lookup = await broken_cache.get("k")
        assert lookup.unavailable
        assert not lookup.miss

    @pytest.mark.asyncio
    async def test_foreign_value_reports_unavailable(self, memory_cache):
        await memory_cache.backend.set("k", "not-json", 60)

        lookup = await memory_cache.get("k")

        assert lookup.unavailable
        assert not lookup.hit

    @pytest.mark.asyncio
    async def test_set_raises(self, broken_cache):
        with pytest.raises(CacheUnavailableError) as exc_info:
            await broken_cache.set("k", "v")
        assert exc_info.value.keys == ("k",)

    @pytest.mark.asyncio
    async def test_set_many_reports_whole_batch(self, broken_cache):
        with pytest.raises(CacheUnavailableError) as exc_info:
            await broken_cache.set_many({"a": 1, "b": 2})
        assert set(exc_info.value.keys) == {"a", "b"}
        assert exc_info.value.backend == "failing"

    @pytest.mark.asyncio
    async def test_delete_raises(self, broken_cache):
        with pytest.raises(CacheUnavailableError):
            await broken_cache.delete("k")

    @pytest.mark.asyncio
    async def test_ping_false(self, broken_cache, monkeypatch):
        monkeypatch.setattr(broken_cache.backend, "ping", AsyncMock(side_effect=ConnectionError()))
        assert await broken_cache.ping() is False


class TestRedisBackend:

    @pytest.mark.asyncio
    async def test_set_many_uses_transaction_pipeline(self):
        pipe = AsyncMock()
        calls = []
        pipe.set = lambda key, value, ex=None: calls.append((key, value, ex))

        class PipelineContext:
            async def __aenter__(self):
                return pipe

            async def __aexit__(self, *exc):
                return False

        client = AsyncMock()
        client.pipeline = lambda transaction: PipelineContext()

        backend = RedisCacheBackend(client)
        await backend.set_many({"a": "1", "b": "2"}, 60)

        assert calls == [("a", "1", 60), ("b", "2", 60)]
        pipe.execute.assert_awaited_once()
