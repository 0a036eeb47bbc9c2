"""
Unit tests for the client-side rate limiter.
"""

import asyncio

import pytest

from shared.errors import RateLimitTimeoutError
from registry_client.ratelimit.limiter import RateLimiter
from registry_client.tests.conftest import FakeClock, RecordingSleep


class TestRateLimiter:
    """Test cases for RateLimiter."""

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_ceiling(self):
        limiter = RateLimiter(max_concurrent=3)
        active = 0
        peak = 0

        async def job():
            nonlocal active, peak
            async with limiter.admit():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(job() for _ in range(12)))

        assert peak == 3
        assert limiter.budget.peak_in_flight == 3
        assert limiter.budget.in_flight == 0

    @pytest.mark.asyncio
    async def test_admission_timeout(self):
        limiter = RateLimiter(max_concurrent=1)
        await limiter.acquire()

        with pytest.raises(RateLimitTimeoutError) as exc_info:
            await limiter.acquire(timeout=0.05)

        assert exc_info.value.details["in_flight"] == 1
        limiter.release()
        assert limiter.budget.in_flight == 0

    @pytest.mark.asyncio
    async def test_slot_released_after_timeout_is_reusable(self):
        limiter = RateLimiter(max_concurrent=1)
        async with limiter.admit():
            with pytest.raises(RateLimitTimeoutError):
                async with limiter.admit(timeout=0.01):
                    pass

        async with limiter.admit(timeout=0.5):
            assert limiter.budget.in_flight == 1

    @pytest.mark.asyncio
    async def test_release_on_error_inside_block(self):
        limiter = RateLimiter(max_concurrent=1)

        with pytest.raises(RuntimeError):
            async with limiter.admit():
                raise RuntimeError("boom")

        assert limiter.budget.in_flight == 0
        async with limiter.admit(timeout=0.1):
            pass

    @pytest.mark.asyncio
    async def test_window_budget_waits_for_next_window(self):
        clock = FakeClock()
        sleep = RecordingSleep(clock)
        limiter = RateLimiter(max_concurrent=10, max_per_window=2, window_seconds=60.0,
                              clock=clock, sleep=sleep)

        for _ in range(3):
            async with limiter.admit():
                pass

        assert sleep.delays == [60.0]
        budget = limiter.budget
        assert budget.count_in_window == 1
        assert budget.window_start == clock()

    @pytest.mark.asyncio
    async def test_window_budget_resets_after_window(self):
        clock = FakeClock()
        sleep = RecordingSleep(clock)
        limiter = RateLimiter(max_concurrent=2, max_per_window=2, window_seconds=10.0,
                              clock=clock, sleep=sleep)

        async with limiter.admit():
            pass
        async with limiter.admit():
            pass
        clock.advance(10.0)
        async with limiter.admit():
            pass

        assert sleep.delays == []

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(max_concurrent=0)
        with pytest.raises(ValueError):
            RateLimiter(max_per_window=0)
