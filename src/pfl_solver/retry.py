"""Bounded retry with a fixed delay between attempts."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .errors import SubmissionExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """Default predicate: retry anything not explicitly marked as fatal."""
    return bool(getattr(error, "retryable", True))


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Fixed-attempt, fixed-delay retry policy.

    Attributes:
        max_attempts: Total attempts, including the first one
        delay: Seconds to wait between attempts (no backoff)
        retry_if: Predicate deciding whether an error may be retried
        sleep: Awaitable sleep, replaceable in tests
    """

    max_attempts: int = 3
    delay: float = 5.0
    retry_if: Callable[[BaseException], bool] = is_retryable
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be non-negative, got {self.delay}")

    async def run(self, operation: Callable[[int], Awaitable[T]], description: str = "operation") -> T:
        """
        Run ``operation`` until it succeeds or the attempt budget is spent.

        The operation receives the 1-based attempt number. Cancellation is
        never retried: ``asyncio.CancelledError`` propagates immediately.

        Args:
            operation: Coroutine factory called once per attempt
            description: Label used in log messages

        Returns:
            The operation's result

        Raises:
            SubmissionExhausted: When every attempt failed with a retryable error
            Exception: Any non-retryable error, unchanged
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            logger.info(f"Attempt {attempt}/{self.max_attempts} to {description}...")
            try:
                return await operation(attempt)
            except Exception as e:
                if not self.retry_if(e):
                    raise
                last_error = e
                logger.error(f"Error in attempt {attempt}: {e}")

            if attempt < self.max_attempts:
                logger.info(f"Retrying in {self.delay} seconds...")
                await self.sleep(self.delay)

        raise SubmissionExhausted(self.max_attempts, last_error) from last_error
