"""Bounded retry policy for draft jobs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

MAX_ATTEMPTS = 5

# Index = attempts already made. Past the end of the table the delay stays flat.
_BACKOFF_TABLE_SECONDS: tuple[int, ...] = (0, 2, 5, 15, 30)
_BACKOFF_CAP_SECONDS = 60


def backoff_seconds(attempts: int) -> int:
    """Delay before the next attempt after ``attempts`` failed attempts."""

    if attempts <= 0:
        return 0
    if attempts < len(_BACKOFF_TABLE_SECONDS):
        return _BACKOFF_TABLE_SECONDS[attempts]
    return _BACKOFF_CAP_SECONDS


@dataclass(slots=True, frozen=True)
class RetryDecision:
    """Outcome of the retry policy for one failed attempt."""

    terminal: bool
    next_attempt_at: datetime | None
    delay_seconds: int


def decide_retry(*, attempts: int, now: datetime, max_attempts: int = MAX_ATTEMPTS) -> RetryDecision:
    """Either give up (``terminal``) or schedule the next attempt."""

    if attempts >= max_attempts:
        return RetryDecision(terminal=True, next_attempt_at=None, delay_seconds=0)
    delay = backoff_seconds(attempts)
    return RetryDecision(
        terminal=False,
        next_attempt_at=now + timedelta(seconds=delay),
        delay_seconds=delay,
    )
