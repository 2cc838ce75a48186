"""Tests for the outbound API rate limiter."""

import asyncio
import time

import pytest

from reelsync.infrastructure.rate_limiter import RateLimiter


class FakeClock:
    """Monotonic clock that only moves when sleep() is awaited."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(requests_per_second=4, clock=clock, sleep=clock.sleep)


class TestRateLimiterInterval:
    """Minimum-interval behaviour with a fake clock."""

    async def test_first_call_does_not_wait(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        waited = await limiter.wait_if_needed()
        assert waited == 0.0
        assert clock.sleeps == []

    async def test_second_call_waits_full_interval(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.wait_if_needed()
        waited = await limiter.wait_if_needed()
        assert waited == pytest.approx(0.25)
        assert clock.sleeps == [pytest.approx(0.25)]

    async def test_waits_only_for_remainder(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.wait_if_needed()
        clock.now += 0.1
        waited = await limiter.wait_if_needed()
        assert waited == pytest.approx(0.15)

    async def test_no_wait_after_interval_elapsed(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        await limiter.wait_if_needed()
        clock.now += 1.0
        assert limiter.can_make_request()
        assert await limiter.wait_if_needed() == 0.0

    async def test_eight_calls_span_seven_intervals(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        start = clock.now
        for _ in range(8):
            await limiter.wait_if_needed()
        assert clock.now - start == pytest.approx(1.75)

    async def test_concurrent_callers_are_serialized(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        start = clock.now
        await asyncio.gather(*(limiter.wait_if_needed() for _ in range(3)))
        # 0, 1 and 2 intervals later - never two calls in the same slot
        assert clock.now - start == pytest.approx(0.5)
        assert len(clock.sleeps) == 2


class TestRateLimiterState:
    """Non-blocking helpers, limit changes and statistics."""

    def test_record_request_blocks_next_slot(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        assert limiter.can_make_request()
        limiter.record_request()
        assert not limiter.can_make_request()
        assert limiter.time_until_next_request() == pytest.approx(0.25)

    def test_set_limit_changes_interval(self, limiter: RateLimiter) -> None:
        limiter.set_limit(2)
        assert limiter.requests_per_second == 2
        assert limiter.min_interval == pytest.approx(0.5)

    def test_set_limit_has_floor_of_one(self, limiter: RateLimiter) -> None:
        limiter.set_limit(0)
        assert limiter.requests_per_second == 1
        limiter.set_limit(-5)
        assert limiter.requests_per_second == 1

    def test_constructor_has_floor_of_one(self, clock: FakeClock) -> None:
        assert RateLimiter(requests_per_second=0, clock=clock).requests_per_second == 1

    def test_reset_allows_immediate_request(self, limiter: RateLimiter) -> None:
        limiter.record_request()
        limiter.reset()
        assert limiter.can_make_request()
        assert limiter.time_until_next_request() == 0.0

    async def test_statistics(self, limiter: RateLimiter) -> None:
        await limiter.wait_if_needed()
        await limiter.wait_if_needed()
        stats = limiter.get_statistics()
        assert stats["requests_per_second"] == 4
        assert stats["total_requests"] == 2
        assert stats["total_wait_seconds"] == pytest.approx(0.25)
        assert stats["can_make_request"] is False

    async def test_context_manager_waits(
        self, limiter: RateLimiter, clock: FakeClock
    ) -> None:
        async with limiter:
            pass
        async with limiter:
            pass
        assert clock.sleeps == [pytest.approx(0.25)]


class TestRateLimiterRealTime:
    """One wall-clock check with the real clock and asyncio.sleep."""

    async def test_eight_calls_at_four_per_second(self) -> None:
        limiter = RateLimiter(requests_per_second=4)
        start = time.monotonic()
        for _ in range(8):
            await limiter.wait_if_needed()
        elapsed = time.monotonic() - start

        assert elapsed >= 1.74
        assert elapsed < 3.0
