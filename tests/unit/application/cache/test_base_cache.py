"""Tests for the in-memory metadata cache."""

import pytest

from reelsync.application.cache import InMemoryCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryCache[str, dict]:
    return InMemoryCache(clock=clock)


class TestInMemoryCache:
    async def test_set_and_get(self, cache: InMemoryCache[str, dict]) -> None:
        await cache.set("movie:603:details", {"title": "The Matrix"})
        assert await cache.get("movie:603:details") == {"title": "The Matrix"}

    async def test_missing_key(self, cache: InMemoryCache[str, dict]) -> None:
        assert await cache.get("nope") is None

    async def test_expired_entry_is_not_returned(
        self, cache: InMemoryCache[str, dict], clock: FakeClock
    ) -> None:
        await cache.set("k", {"v": 1}, ttl_seconds=10)
        clock.now = 11
        assert await cache.get("k") is None

    async def test_delete(self, cache: InMemoryCache[str, dict]) -> None:
        await cache.set("k", {})
        assert await cache.delete("k") is True
        assert await cache.delete("k") is False

    async def test_purge_expired_counts_removed(
        self, cache: InMemoryCache[str, dict], clock: FakeClock
    ) -> None:
        await cache.set("short", {}, ttl_seconds=5)
        await cache.set("long", {}, ttl_seconds=500)
        clock.now = 60

        assert cache.get_stats() == {
            "total_entries": 2,
            "active_entries": 1,
            "expired_entries": 1,
        }
        assert await cache.purge_expired() == 1
        assert await cache.get("long") == {}
        assert await cache.purge_expired() == 0

    async def test_clear(self, cache: InMemoryCache[str, dict]) -> None:
        await cache.set("a", {})
        await cache.clear()
        assert cache.get_stats()["total_entries"] == 0
