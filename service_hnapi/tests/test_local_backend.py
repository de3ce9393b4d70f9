"""
Unit tests for the in-process cache backend.
"""

import threading

import pytest

from shared.test_helpers import ManualClock

from service_hnapi.app.caching.base import CacheMiss, CacheWriteError
from service_hnapi.app.caching.local_backend import LocalCacheBackend


class TestLocalCacheBackend:
    """Test cases for LocalCacheBackend."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def backend(self, clock):
        return LocalCacheBackend(clock=clock)

    @pytest.mark.asyncio
    async def test_set_then_get(self, backend):
        value = {"id": 1, "comments": [{"id": 2, "comments": []}], "url": None}

        await backend.set("post1", value, 60)

        assert await backend.get("post1") == value

    @pytest.mark.asyncio
    async def test_values_are_copied(self, backend):
        value = {"comments": []}
        await backend.set("post1", value, 60)

        value["comments"].append("mutated")
        fetched = await backend.get("post1")
        fetched["comments"].append("mutated again")

        assert await backend.get("post1") == {"comments": []}

    @pytest.mark.asyncio
    async def test_missing_key(self, backend):
        with pytest.raises(CacheMiss) as exc_info:
            await backend.get("news")

        assert exc_info.value.key == "news"

    @pytest.mark.asyncio
    async def test_entry_expires(self, backend, clock):
        await backend.set("news", [1], 60)

        clock.advance(59)
        assert await backend.get("news") == [1]

        clock.advance(1)
        with pytest.raises(CacheMiss):
            await backend.get("news")

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self, backend, clock):
        await backend.set("news", [1], 0)

        clock.advance(10 ** 6)

        assert await backend.get("news") == [1]

    @pytest.mark.asyncio
    async def test_delete(self, backend):
        await backend.set("news2", [1], 60)

        await backend.delete("news2")
        await backend.delete("never-set")

        with pytest.raises(CacheMiss):
            await backend.get("news2")

    @pytest.mark.asyncio
    async def test_capacity_rejects_new_keys(self, clock):
        backend = LocalCacheBackend(max_keys=2, clock=clock)
        await backend.set("a", 1, 60)
        await backend.set("b", 2, 60)

        with pytest.raises(CacheWriteError):
            await backend.set("c", 3, 60)

        # Overwriting an existing key is still allowed
        await backend.set("a", 10, 60)
        assert await backend.get("a") == 10

    @pytest.mark.asyncio
    async def test_capacity_reclaims_expired_keys(self, clock):
        backend = LocalCacheBackend(max_keys=1, clock=clock)
        await backend.set("a", 1, 10)
        clock.advance(11)

        await backend.set("b", 2, 10)

        assert await backend.get("b") == 2

    @pytest.mark.asyncio
    async def test_uncopyable_value_is_a_write_error(self, backend):
        with pytest.raises(CacheWriteError):
            await backend.set("lock", threading.Lock(), 60)

    @pytest.mark.asyncio
    async def test_stats(self, backend, clock):
        await backend.set("a", 1, 10)
        await backend.set("b", 2, 100)
        await backend.get("a")
        with pytest.raises(CacheMiss):
            await backend.get("c")
        clock.advance(50)

        assert await backend.stats() == {"hits": 1, "misses": 1, "keys": 1}
