"""Retry policy with exponential backoff for best-effort sinks.

Only the notification and ledger sinks retry. Payment calls never go through
here: a payment failure must surface immediately and roll back.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff settings.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        base_delay_seconds: Delay before the first retry
        multiplier: Factor applied to the delay after each failed attempt
        max_delay_seconds: Upper bound on a single delay
    """
    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    multiplier: float = 2.0
    max_delay_seconds: float = 30.0

    def get_backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (0-indexed)."""
        return min(self.base_delay_seconds * (self.multiplier ** attempt), self.max_delay_seconds)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "operation",
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> T:
        """
        Await ``operation()`` until it succeeds or attempts run out.

        Raises:
            Exception: the last error once every attempt has failed
        """
        sleep = sleep or asyncio.sleep
        attempts = max(1, self.max_attempts)
        last_exc: Optional[BaseException] = None
        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as e:
                last_exc = e
                if attempt + 1 >= attempts:
                    break
                delay = self.get_backoff_delay(attempt)
                logger.info(
                    "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                    description, attempt + 1, attempts, e, delay,
                )
                await sleep(delay)
        raise last_exc  # type: ignore[misc]

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.sink_retry_max_attempts,
            base_delay_seconds=settings.sink_retry_base_delay_seconds,
            multiplier=settings.sink_retry_multiplier,
        )
