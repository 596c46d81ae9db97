"""Tests for the bounded permission cache."""

import pytest

from warden.auth import PermissionCache, PermissionLevel


@pytest.fixture
def cache(clock) -> PermissionCache:
    return PermissionCache(ttl=300, max_size=10000, clock=clock)


class TestPermissionCache:

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: PermissionCache, clock) -> None:
        entry = await cache.set(42, "alice", "acme", "widgets", PermissionLevel.WRITE)

        assert entry.role == "Collaborator"
        assert entry.cached_at == clock.now
        found = await cache.get(42, "acme", "widgets")
        assert found == entry

    @pytest.mark.asyncio
    async def test_string_level_is_parsed(self, cache: PermissionCache) -> None:
        entry = await cache.set(42, "alice", "acme", "widgets", "maintain")
        assert entry.level is PermissionLevel.MAINTAIN
        assert entry.role == "Maintainer"

    @pytest.mark.asyncio
    async def test_miss(self, cache: PermissionCache) -> None:
        assert await cache.get(42, "acme", "widgets") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, cache: PermissionCache, clock) -> None:
        await cache.set(42, "alice", "acme", "widgets", PermissionLevel.READ)

        clock.advance(300)
        assert await cache.get(42, "acme", "widgets") is not None

        clock.advance(1)
        assert await cache.get(42, "acme", "widgets") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_per_entry_ttl(self, cache: PermissionCache, clock) -> None:
        await cache.set(42, "alice", "acme", "widgets", "none", ttl=30)
        clock.advance(31)
        assert await cache.get(42, "acme", "widgets") is None

    @pytest.mark.asyncio
    async def test_read_does_not_extend_lifetime(
        self, cache: PermissionCache, clock
    ) -> None:
        await cache.set(42, "alice", "acme", "widgets", "admin")
        for _ in range(3):
            clock.advance(100)
            await cache.get(42, "acme", "widgets")
        clock.advance(1)
        assert await cache.get(42, "acme", "widgets") is None

    @pytest.mark.asyncio
    async def test_replacing_entry_does_not_evict(self, clock) -> None:
        cache = PermissionCache(ttl=300, max_size=2, clock=clock)
        await cache.set(1, "a", "acme", "one", "read")
        await cache.set(2, "b", "acme", "two", "read")
        await cache.set(1, "a", "acme", "one", "write")

        assert len(cache) == 2
        assert (await cache.get(1, "acme", "one")).level is PermissionLevel.WRITE
        assert await cache.get(2, "acme", "two") is not None

    @pytest.mark.asyncio
    async def test_eviction_at_capacity(self, cache: PermissionCache, clock) -> None:
        """Inserting the 10,001st pair evicts exactly the oldest entry."""
        for subject_id in range(10000):
            await cache.set(subject_id, f"user{subject_id}", "acme", "widgets", "read")
            clock.advance(0.001)

        assert len(cache) == 10000
        await cache.set(99999, "newcomer", "acme", "widgets", "write")

        assert len(cache) == 10000
        assert (0, "acme", "widgets") not in cache
        assert (1, "acme", "widgets") in cache
        assert (99999, "acme", "widgets") in cache
        assert cache.stats()["utilization_percent"] == 100.0

    @pytest.mark.asyncio
    async def test_invalidate_is_idempotent(self, cache: PermissionCache) -> None:
        await cache.set(42, "alice", "acme", "widgets", "write")

        assert await cache.invalidate(42, "acme", "widgets") is True
        assert await cache.invalidate(42, "acme", "widgets") is False
        assert await cache.get(42, "acme", "widgets") is None

    @pytest.mark.asyncio
    async def test_invalidate_all_for_subject(self, cache: PermissionCache) -> None:
        await cache.set(42, "alice", "acme", "widgets", "write")
        await cache.set(42, "alice", "acme", "gadgets", "admin")
        await cache.set(7, "bob", "acme", "widgets", "read")

        assert await cache.invalidate_all(42) == 2
        assert len(cache) == 1
        assert await cache.get(7, "acme", "widgets") is not None

    @pytest.mark.asyncio
    async def test_clear(self, cache: PermissionCache) -> None:
        await cache.set(42, "alice", "acme", "widgets", "write")
        await cache.set(7, "bob", "acme", "widgets", "read")
        assert await cache.clear() == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_sweep_expired(self, cache: PermissionCache, clock) -> None:
        await cache.set(42, "alice", "acme", "widgets", "write")
        clock.advance(200)
        await cache.set(7, "bob", "acme", "widgets", "read")
        clock.advance(101)

        assert await cache.sweep_expired() == 1
        assert (7, "acme", "widgets") in cache

    def test_stats_empty(self, cache: PermissionCache) -> None:
        assert cache.stats() == {
            "size": 0,
            "capacity": 10000,
            "utilization_percent": 0.0,
        }

    def test_invalid_max_size(self) -> None:
        with pytest.raises(ValueError):
            PermissionCache(max_size=0)
