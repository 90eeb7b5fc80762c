"""
Bounded retry policy with exponential backoff and jitter.

Used for idempotent reads (table hydration, reconciliation after a push)
and for Redis publishing. Writes that move money are never retried here.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Final, TypeVar

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

T = TypeVar("T")


DEFAULT_JITTER_FACTOR: Final[float] = 0.25
DEFAULT_BACKOFF_BASE: Final[float] = 2.0


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first one.
        initial_delay: Delay in seconds before the first retry.
        max_delay: Maximum delay cap in seconds.
        backoff_base: Exponential backoff multiplier.
        jitter_factor: Random jitter range as fraction (0.25 = ±25%).
    """

    max_attempts: int = 2
    initial_delay: float = 0.5
    max_delay: float = 2.0
    backoff_base: float = DEFAULT_BACKOFF_BASE
    jitter_factor: float = DEFAULT_JITTER_FACTOR

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_base < 1:
            raise ValueError("backoff_base must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    def delay_for(self, attempt: int) -> float:
        """
        Delay before retry number ``attempt`` (0-indexed).

            base = initial_delay * backoff_base ** attempt
            delay = min(base, max_delay) * (1 ± jitter_factor)
        """
        base_delay = self.initial_delay * (self.backoff_base ** attempt)
        capped_delay = min(base_delay, self.max_delay)
        jitter_range = capped_delay * self.jitter_factor
        jitter = random.uniform(-jitter_range, jitter_range) if jitter_range else 0.0
        return max(0.0, capped_delay + jitter)

    @classmethod
    def for_reconciliation(cls) -> "RetryPolicy":
        """Read-retry policy for the lifecycle controller, taken from settings."""
        return cls(
            max_attempts=settings.reconcile_retry_attempts,
            initial_delay=settings.reconcile_retry_delay_seconds,
            max_delay=max(
                settings.reconcile_retry_max_delay_seconds,
                settings.reconcile_retry_delay_seconds,
            ),
            jitter_factor=0.0,
        )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    description: str = "operation",
) -> T:
    """
    Await ``operation`` up to ``policy.max_attempts`` times.

    Only exceptions in ``retry_on`` trigger another attempt; the last one
    is re-raised once the attempts are exhausted.
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= policy.max_attempts - 1:
                logger.error(
                    "Retry attempts exhausted",
                    operation=description,
                    attempts=policy.max_attempts,
                    error=str(e),
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Operation failed, retrying",
                operation=description,
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
                delay_seconds=round(delay, 2),
                error=str(e),
            )
            await asyncio.sleep(delay)
    raise RuntimeError(f"{description} was not attempted")
