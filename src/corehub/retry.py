"""RetryPolicy: bounded attempts with a pluggable backoff function."""

from __future__ import annotations

import asyncio
from typing import Callable

Backoff = Callable[[int, float], float]


def linear_backoff(attempt: int, base_delay: float) -> float:
    """``base_delay * attempt``: 0.3s, 0.6s, 0.9s, ... for a 0.3s base."""
    return base_delay * attempt


class RetryPolicy:
    """Configurable retry for webhook deliveries.

    Defaults match the dispatch contract: three attempts in total and a
    linear backoff of 300ms times the number of the attempt that just failed.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 0.3,
        max_delay: float = 30.0,
        backoff: Backoff = linear_backoff,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of delivery attempts (including first).
            base_delay: Delay unit in seconds fed to the backoff function.
            max_delay: Cap on any single delay in seconds.
            backoff: ``(attempt, base_delay) -> seconds``.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff = backoff

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed (attempt is 1-based)."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        """Return the delay in seconds after the given 1-based failed attempt."""
        if attempt < 1:
            return 0.0
        return float(max(0.0, min(self.backoff(attempt, self.base_delay), self.max_delay)))

    async def wait_before_retry(self, attempt: int) -> None:
        """Suspend the calling task (not the event loop) before the next attempt."""
        d = self.delay_for_attempt(attempt)
        if d > 0:
            await _sleep(d)


async def _sleep(seconds: float) -> None:
    """Async sleep (overridable for tests)."""
    await asyncio.sleep(seconds)
