"""Backoff schedule for retried requests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

DEFAULT_MAX_RETRIES = 1
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0,)


def delay_for(schedule: Sequence[float], attempt: int) -> float:
    """Return the wait in seconds before retry number ``attempt`` (1-indexed).

    An empty schedule means no delay. Attempts past the end of the schedule
    reuse its last entry.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    if not schedule:
        return 0.0
    if attempt - 1 < len(schedule):
        return float(schedule[attempt - 1])
    return float(schedule[-1])


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delays: tuple[float, ...] = field(default=DEFAULT_RETRY_DELAYS)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        delays = tuple(float(value) for value in self.retry_delays)
        if any(value < 0 for value in delays):
            raise ValueError("retry_delays entries must be >= 0")
        object.__setattr__(self, "retry_delays", delays)

    def allows(self, attempt: int) -> bool:
        return attempt <= self.max_retries

    def delay_for(self, attempt: int) -> float:
        return delay_for(self.retry_delays, attempt)
