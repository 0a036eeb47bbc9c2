"""
Retry policy for registry calls.

A single execution moves through ``ATTEMPTING -> BACKOFF -> ATTEMPTING ...``
until it ends in ``SUCCEEDED`` or ``EXHAUSTED``. Non-retryable errors leave
the machine immediately. Sleep and the jitter source are injectable so tests
can drive the machine without wall-clock waits.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from shared.errors import RegistryClientError, RetriesExhaustedError
from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 0.5,
                 max_delay: float = 10.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = "exponential"):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy


class RetryState(str, Enum):
    """States of a single retry execution."""
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryTransition:
    """One step of the retry state machine."""
    state: RetryState
    attempt: int
    delay: float = 0.0
    error: Optional[RegistryClientError] = None


def calculate_delay(attempt: int, config: RetryConfig, rng: Optional[random.Random] = None) -> float:
    """Calculate delay after a failed attempt (1-based)."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    elif config.backoff_strategy == "fixed":
        delay = config.base_delay
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += (rng or random).uniform(-jitter_amount, jitter_amount)

    return max(0.0, min(delay, config.max_delay))


class RetryPolicy:
    """Drives an operation through bounded retries with backoff."""

    def __init__(self,
                 config: Optional[RetryConfig] = None,
                 *,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 rng: Optional[random.Random] = None,
                 name: str = "registry"):
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng
        self.logger = get_logger(f"retry.{name}")

    async def execute(self,
                      operation: Callable[[], Awaitable[Any]],
                      *,
                      on_transition: Optional[Callable[[RetryTransition], None]] = None) -> Any:
        """Run ``operation`` until it succeeds, fails permanently, or runs out of attempts."""

        def emit(transition: RetryTransition) -> None:
            if on_transition is not None:
                on_transition(transition)

        attempt = 1
        while True:
            emit(RetryTransition(RetryState.ATTEMPTING, attempt))
            try:
                result = await operation()
            except RegistryClientError as e:
                if not e.retryable:
                    raise

                if attempt >= self.config.max_attempts:
                    emit(RetryTransition(RetryState.EXHAUSTED, attempt, error=e))
                    self.logger.error(
                        "All retry attempts exhausted",
                        attempt=attempt,
                        max_attempts=self.config.max_attempts,
                        error=str(e)
                    )
                    raise RetriesExhaustedError(e, attempt) from e

                delay = calculate_delay(attempt, self.config, self._rng)
                emit(RetryTransition(RetryState.BACKOFF, attempt, delay=delay, error=e))
                self.logger.warning(
                    "Retry attempt failed, waiting before next attempt",
                    attempt=attempt,
                    delay=delay,
                    error=str(e)
                )
                await self._sleep(delay)
                attempt += 1
                continue

            emit(RetryTransition(RetryState.SUCCEEDED, attempt))
            if attempt > 1:
                self.logger.info("Retry succeeded", attempt=attempt)
            return result
