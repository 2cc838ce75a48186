"""
Rate limiter for outbound metadata API calls.

Hey future me - this is the ONE thing standing between us and a banned API key!
The metadata provider has a per-key quota, so every SyncExecutor call goes through
wait_if_needed() first.

ALGORITHM: minimum interval
- One shared "last request" timestamp
- Next call is allowed once 1 / requests_per_second seconds have passed
- wait_if_needed() sleeps for the remainder, then stamps "now"

CONCURRENCY:
The check-then-stamp runs under an asyncio.Lock, and the sleep happens INSIDE
the lock. That serializes concurrent callers: if three coroutines arrive at once,
they leave 0, 1 and 2 intervals later. Never move the sleep outside the lock or
two callers can both see "allowed" and burst.

USAGE:
    limiter = RateLimiter(requests_per_second=4)

    await limiter.wait_if_needed()
    result = await executor.execute(job)

    # or
    async with limiter:
        result = await executor.execute(job)
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_SECOND = 4


class RateLimiter:
    """Minimum-interval limiter with an atomic check-and-stamp.

    The clock and sleep functions are injectable so tests can drive it with a
    fake clock instead of waiting in real time.
    """

    def __init__(
        self,
        requests_per_second: int = DEFAULT_REQUESTS_PER_SECOND,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "metadata_api",
    ) -> None:
        self._requests_per_second = max(1, int(requests_per_second))
        self._clock = clock
        self._sleep = sleep
        self._name = name
        # None = no request recorded yet, first call never waits
        self._last_request_time: float | None = None
        self._lock = asyncio.Lock()
        self._total_requests = 0
        self._total_wait_seconds = 0.0

    @property
    def name(self) -> str:
        return self._name

    @property
    def requests_per_second(self) -> int:
        return self._requests_per_second

    @property
    def min_interval(self) -> float:
        return 1.0 / self._requests_per_second

    def set_limit(self, requests_per_second: int) -> None:
        """Change the ceiling. Values below 1 are raised to 1."""
        self._requests_per_second = max(1, int(requests_per_second))
        logger.info(
            "RateLimiter[%s]: limit set to %d req/s",
            self._name,
            self._requests_per_second,
        )

    def time_until_next_request(self) -> float:
        """Seconds until the next call is allowed (0.0 if allowed now)."""
        if self._last_request_time is None:
            return 0.0
        elapsed = self._clock() - self._last_request_time
        return max(0.0, self.min_interval - elapsed)

    def can_make_request(self) -> bool:
        """Non-blocking check of the interval condition."""
        return self.time_until_next_request() <= 0.0

    def record_request(self) -> None:
        """Stamp 'now' as the last call time without waiting."""
        self._last_request_time = self._clock()
        self._total_requests += 1

    async def wait_if_needed(self) -> float:
        """Wait until the interval has elapsed, then stamp the request.

        Returns:
            Seconds actually waited
        """
        async with self._lock:
            wait_time = self.time_until_next_request()
            if wait_time > 0:
                logger.debug(
                    "RateLimiter[%s]: waiting %.3fs before next request",
                    self._name,
                    wait_time,
                )
                await self._sleep(wait_time)
                self._total_wait_seconds += wait_time
            self.record_request()
            return wait_time

    def reset(self) -> None:
        """Forget the last request so the next call goes through immediately."""
        self._last_request_time = None

    def get_statistics(self) -> dict[str, Any]:
        """Limiter state for status endpoints."""
        return {
            "name": self._name,
            "requests_per_second": self._requests_per_second,
            "last_request_time": self._last_request_time,
            "time_until_next": round(self.time_until_next_request(), 3),
            "can_make_request": self.can_make_request(),
            "total_requests": self._total_requests,
            "total_wait_seconds": round(self._total_wait_seconds, 3),
        }

    async def __aenter__(self) -> "RateLimiter":
        await self.wait_if_needed()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        pass


__all__ = ["DEFAULT_REQUESTS_PER_SECOND", "RateLimiter"]
