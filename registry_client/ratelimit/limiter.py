"""
Client-side rate limiter for outgoing registry requests.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from shared.errors import RateLimitTimeoutError
from shared.logging import get_logger


@dataclass
class RateBudget:
    """Counters guarded by one RateLimiter."""
    in_flight: int = 0
    window_start: float = 0.0
    count_in_window: int = 0
    peak_in_flight: int = 0


class RateLimiter:
    """Bounds in-flight requests and, optionally, requests per window.

    Each client owns its limiter; nothing here is process global.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        max_per_window: Optional[int] = None,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if max_per_window is not None and max_per_window < 1:
            raise ValueError("max_per_window must be at least 1")
        self.max_concurrent = max_concurrent
        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._window_lock = asyncio.Lock()
        self._budget = RateBudget(window_start=clock())
        self.logger = get_logger("registry.rate_limiter")

    @property
    def budget(self) -> RateBudget:
        """Snapshot of the current counters."""
        return replace(self._budget)

    async def acquire(self, timeout: Optional[float] = None) -> None:
        """Wait for a slot; raises RateLimitTimeoutError after ``timeout`` seconds."""
        if timeout is None:
            await self._acquire()
            return
        try:
            await asyncio.wait_for(self._acquire(), timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                "Rate limit admission timed out",
                timeout=timeout,
                in_flight=self._budget.in_flight,
                max_concurrent=self.max_concurrent
            )
            raise RateLimitTimeoutError(timeout, details={
                "in_flight": self._budget.in_flight,
                "max_concurrent": self.max_concurrent,
            })

    async def _acquire(self) -> None:
        await self._semaphore.acquire()
        try:
            await self._reserve_window_slot()
        except BaseException:
            self._semaphore.release()
            raise
        self._budget.in_flight += 1
        self._budget.peak_in_flight = max(self._budget.peak_in_flight, self._budget.in_flight)

    async def _reserve_window_slot(self) -> None:
        if self.max_per_window is None:
            return
        while True:
            async with self._window_lock:
                now = self._clock()
                if now - self._budget.window_start >= self.window_seconds:
                    self._budget.window_start = now
                    self._budget.count_in_window = 0
                if self._budget.count_in_window < self.max_per_window:
                    self._budget.count_in_window += 1
                    return
                wait = self._budget.window_start + self.window_seconds - now
            self.logger.debug("Request window full, waiting", wait=wait)
            await self._sleep(max(wait, 0.0))

    def release(self) -> None:
        self._budget.in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def admit(self, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block."""
        await self.acquire(timeout)
        try:
            yield
        finally:
            self.release()
