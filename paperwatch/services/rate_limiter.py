"""
Minimum-interval throttle for outbound arXiv requests.

arXiv asks clients to stay at or below one request every three seconds. A
single RateLimiter instance is shared by the interactive search path and the
subscription worker, so both draw from the same budget.
"""
import asyncio
import time
from typing import Awaitable, Callable, Optional
from paperwatch.models.results import RateLimiterStatus
from paperwatch.services.logger import logger

class RateLimiter:
    def __init__(
        self,
        requests_per_second: float = 0.33,
        name: str = "RateLimiter",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.min_interval = 1.0 / requests_per_second
        self.name = name
        self._clock = clock
        self._sleep = sleep
        # Callers queue here (FIFO) so the wait check and the timestamp update
        # are one critical section.
        self._lock = asyncio.Lock()
        self.last_request_at: Optional[float] = None
        self.pending_count = 0
        logger.debug(f"{self.name} initialized (min interval {self.min_interval:.2f}s)")

    async def throttle(self):
        """Wait until a request is allowed, then claim the slot."""
        self.pending_count += 1
        try:
            async with self._lock:
                wait_time = self.get_wait_time()
                if wait_time > 0:
                    logger.debug(f"{self.name}: throttling for {wait_time:.2f}s ({self.pending_count} pending)")
                    await self._sleep(wait_time)
                self.last_request_at = self._clock()
        finally:
            self.pending_count -= 1

    def get_wait_time(self) -> float:
        """Seconds until the next request may start (0 if it may start now)."""
        if self.last_request_at is None:
            return 0.0
        elapsed = self._clock() - self.last_request_at
        return max(0.0, self.min_interval - elapsed)

    def can_proceed(self) -> bool:
        return self.get_wait_time() == 0.0

    def status(self) -> RateLimiterStatus:
        return RateLimiterStatus(
            can_proceed=self.can_proceed(),
            wait_time_ms=round(self.get_wait_time() * 1000, 1),
            pending_requests=self.pending_count,
        )

    def reset(self):
        # pending_count belongs to in-flight throttle() calls
        self.last_request_at = None
