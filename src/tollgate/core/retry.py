"""Backoff schedule and resend loop for transient ledger outages."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from tollgate.core.errors import LedgerUnreachableError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """How many times, and how patiently, to resend."""

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    jitter: bool = True

    def delays(self) -> Iterator[float]:
        """Pause before each resend, doubling from ``base_delay``."""
        for attempt in range(self.max_retries):
            yield _compute_delay(attempt, self)


def is_retryable(error: Exception) -> bool:
    """Only ledger outages are worth resending unchanged."""
    return isinstance(error, LedgerUnreachableError)


def _compute_delay(attempt: int, config: RetryConfig) -> float:
    delay = min(config.base_delay * 2**attempt, config.max_delay)
    return delay * random.uniform(0.5, 1.5) if config.jitter else delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Await ``fn()``, resending after a pause while it raises a retryable error.

    Args:
        fn: Zero-arg callable returning an awaitable. Called once per attempt.
        config: Backoff schedule. Uses defaults if None.
        on_retry: Optional callback(resend_number, delay, error) before each pause.

    Raises:
        Any non-retryable error at once. The last retryable error once
        ``max_retries`` resends are used up.
    """
    cfg = config or RetryConfig()
    for resend, delay in enumerate(cfg.delays(), start=1):
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e):
                raise
            if on_retry is not None:
                on_retry(resend, delay, e)
        await asyncio.sleep(delay)
    return await fn()
