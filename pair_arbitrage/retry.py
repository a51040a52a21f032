"""
Reusable retry-with-backoff policy for async calls.

One policy object replaces the per-call-site retry loops: it owns the
attempt budget and the delay schedule, and the caller decides which
exceptions are worth another attempt.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from pair_arbitrage.utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

BackoffFn = Callable[[int], float]
RetryCallback = Callable[[int, BaseException, float], None]


def linear_backoff(base_sec: float) -> BackoffFn:
    """Delay grows with the attempt number: base, 2*base, 3*base..."""
    return lambda attempt: attempt * base_sec


def exponential_backoff(base_sec: float) -> BackoffFn:
    """Delay doubles on each attempt: base, 2*base, 4*base..."""
    return lambda attempt: base_sec * (2 ** (attempt - 1))


BACKOFF_STRATEGIES = {"linear": linear_backoff, "exponential": exponential_backoff}


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a backoff schedule.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        backoff: Maps the 1-based number of the failed attempt to a delay in seconds
        sleep: Awaitable sleep, swappable in tests
    """

    max_attempts: int = 3
    backoff: BackoffFn = field(default=linear_backoff(1.0))
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {self.max_attempts}")

    @classmethod
    def from_strategy(
        cls, strategy: str, max_attempts: int = 3, base_sec: float = 1.0
    ) -> "RetryPolicy":
        """Build a policy from a backoff strategy name ("linear" or "exponential")."""
        try:
            backoff = BACKOFF_STRATEGIES[strategy]
        except KeyError:
            raise ValueError(f"Unknown backoff strategy: {strategy}") from None
        return cls(max_attempts=max_attempts, backoff=backoff(base_sec))

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given failed attempt."""
        return max(0.0, float(self.backoff(attempt)))

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        non_retryable: Tuple[Type[BaseException], ...] = (),
        on_retry: Optional[RetryCallback] = None,
    ) -> T:
        """
        Await ``fn()`` until it succeeds or the budget runs out.

        Exceptions listed in ``non_retryable`` propagate on first sight.
        After the final failed attempt the last exception is re-raised.

        Args:
            fn: Zero-argument coroutine factory, called once per attempt
            non_retryable: Exception types that must not be retried
            on_retry: Called with (attempt, error, delay) before each backoff sleep

        Returns:
            Whatever ``fn`` returns on its first successful attempt
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except non_retryable:
                raise
            except Exception as e:
                if attempt == self.max_attempts:
                    raise

                delay = self.delay_for(attempt)
                if on_retry is not None:
                    on_retry(attempt, e, delay)
                else:
                    logger.debug(f"Attempt {attempt} failed ({e}); retrying in {delay:.2f}s")
                await self.sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without result")
