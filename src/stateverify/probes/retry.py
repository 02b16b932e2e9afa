from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..core.clock import Clock
from .base import ProbeFailure, ProbeResult


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry of transient probe failures with exponential backoff."""

    retries: int = 1
    backoff_seconds: float = 0.5
    multiplier: float = 2.0
    max_backoff_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.backoff_seconds < 0 or self.multiplier < 1:
            raise ValueError("backoff must be >= 0 and multiplier >= 1")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delay_for(self, attempt: int) -> float:
        """Sleep before attempt `attempt + 1`, attempts counted from 1."""
        delay = self.backoff_seconds * (self.multiplier ** max(0, attempt - 1))
        return min(delay, self.max_backoff_seconds)

    def execute(
        self,
        attempt_fn: Callable[[int], ProbeResult],
        clock: Clock,
        deadline: float | None = None,
    ) -> tuple[ProbeResult, int]:
        attempt = 0
        while True:
            attempt += 1
            result = attempt_fn(attempt)
            if not isinstance(result, ProbeFailure) or not result.transient:
                return result, attempt
            if attempt >= self.max_attempts:
                return result, attempt
            delay = self.delay_for(attempt)
            if deadline is not None and clock.monotonic() + delay >= deadline:
                return result, attempt
            clock.sleep(delay)


__all__ = ["RetryPolicy"]
