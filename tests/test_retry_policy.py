from __future__ import annotations

from datetime import UTC, datetime, timedelta

import allure
import pytest

from proposal_drafts.drafts.retry import MAX_ATTEMPTS, backoff_seconds, decide_retry

pytestmark = [
    allure.epic("Draft Queue"),
    allure.feature("Retry & Backoff"),
]


@pytest.mark.parametrize(
    ("attempts", "expected"),
    [(0, 0), (1, 2), (2, 5), (3, 15), (4, 30), (5, 60), (6, 60), (50, 60)],
)
def test_backoff_table(attempts: int, expected: int) -> None:
    assert backoff_seconds(attempts) == expected


def test_negative_attempts_have_no_delay() -> None:
    assert backoff_seconds(-1) == 0


def test_decide_retry_schedules_next_attempt_below_cap() -> None:
    now = datetime(2026, 10, 18, 9, 0, tzinfo=UTC)

    decision = decide_retry(attempts=3, now=now)

    assert not decision.terminal
    assert decision.delay_seconds == 15
    assert decision.next_attempt_at == now + timedelta(seconds=15)


def test_decide_retry_is_terminal_at_max_attempts() -> None:
    now = datetime(2026, 10, 18, 9, 0, tzinfo=UTC)

    decision = decide_retry(attempts=MAX_ATTEMPTS, now=now)

    assert MAX_ATTEMPTS == 5
    assert decision.terminal
    assert decision.next_attempt_at is None


def test_decide_retry_honours_custom_max_attempts() -> None:
    now = datetime(2026, 10, 18, 9, 0, tzinfo=UTC)

    assert decide_retry(attempts=2, now=now, max_attempts=2).terminal
    assert not decide_retry(attempts=1, now=now, max_attempts=2).terminal
