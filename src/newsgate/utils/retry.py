"""
Retry policy shared by the generation orchestrator and the reference acquisitor.

A policy bundles an attempt limit and a backoff schedule with the predicate
deciding which failures are worth another attempt. A failure carrying a
``retry_after_s`` hint waits at least that long, up to ``max_retry_after_s``.

Example:
    policy = RetryPolicy(
        max_attempts=2,
        backoff=linear_backoff(0.9, 0.45),
        is_retryable=is_transient_error,
        name="gemini",
    )
    text = await policy.run(lambda attempt: call_model(prompt))
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import constants

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(base_s: float, step_s: float = 0.0) -> Callable[[int], float]:
    """Backoff of ``base_s`` plus ``step_s`` per completed attempt."""

    def _delay(attempt: int) -> float:
        return max(0.0, base_s + step_s * attempt)

    return _delay


def no_backoff(attempt: int) -> float:
    return 0.0


def always_retry(error: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """
    Bounded retry with a backoff schedule and a retryable-error predicate.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        backoff: Maps the zero-based index of the failed attempt to a delay in seconds
        is_retryable: Returns True when a failure should be retried
        max_retry_after_s: Upper bound on delays requested by a failure's
            ``retry_after_s`` hint
        sleep: Awaitable sleep, injectable for tests
        name: Label used in log messages
    """

    max_attempts: int = 2
    backoff: Callable[[int], float] = no_backoff
    is_retryable: Callable[[BaseException], bool] = always_retry
    max_retry_after_s: float = constants.RETRY_AFTER_CAP_S
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    name: str = "operation"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: Async callable receiving the zero-based attempt index
            on_retry: Optional hook called before each retry with the failed
                attempt index and its error

        Returns:
            The first successful result

        Raises:
            The last error when attempts are exhausted or the error is not retryable.
            Cancellation is never intercepted.
        """
        attempt = 0
        while True:
            try:
                return await operation(attempt)
            except Exception as e:
                last_attempt = attempt + 1 >= self.max_attempts
                if last_attempt or not self.is_retryable(e):
                    raise
                delay = self.delay_for(attempt, e)
                logger.info(
                    f"{self.name} attempt {attempt + 1}/{self.max_attempts} failed, "
                    f"retrying in {delay:.2f}s: {e}"
                )
                if on_retry is not None:
                    on_retry(attempt, e)
                if delay > 0:
                    await self.sleep(delay)
                attempt += 1

    def delay_for(self, attempt: int, error: BaseException) -> float:
        """Scheduled backoff, stretched to the failure's retry-after hint when it asks for longer."""
        delay = self.backoff(attempt)
        hint = getattr(error, "retry_after_s", None)
        if hint:
            delay = max(delay, min(float(hint), self.max_retry_after_s))
        return delay
