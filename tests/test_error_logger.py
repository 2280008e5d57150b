from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

import allure

from proposal_drafts.drafts.errors import TemplateNotFoundError
from proposal_drafts.errorlog import ErrorCategory, ErrorLogger
from proposal_drafts.storage.common import utc_now

pytestmark = [
    allure.epic("Draft Queue"),
    allure.feature("Failures & Error Log"),
]


def test_append_writes_jsonl_and_recent_is_newest_first(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path / "logs" / "errors.jsonl")

    error_logger.append(category=ErrorCategory.DRAFT_JOB, error="JOB_NOT_FOUND: 1", job_id=1)
    error_logger.append(
        category=ErrorCategory.NETWORK,
        error="timed out",
        job_id=2,
        draft_id=7,
        details={"attempts": 3},
    )

    lines = (tmp_path / "logs" / "errors.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1])["category"] == "NETWORK"

    recent = error_logger.recent()
    assert [entry.error for entry in recent] == ["timed out", "JOB_NOT_FOUND: 1"]
    assert recent[0].draft_id == 7
    assert recent[0].details == {"attempts": 3}
    assert error_logger.recent(limit=1)[0].job_id == 2
    assert [entry.job_id for entry in error_logger.recent(category=ErrorCategory.DRAFT_JOB)] == [1]


def test_append_records_exception_stack(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path / "errors.jsonl")
    try:
        raise TemplateNotFoundError("bathroom/vanity")
    except TemplateNotFoundError as error:
        error_logger.append(category=ErrorCategory.DRAFT_TEMPLATE, error=error, draft_id=3)

    [entry] = error_logger.recent()
    assert entry.error == "TEMPLATE_NOT_FOUND: bathroom/vanity"
    assert entry.stack is not None
    assert "TemplateNotFoundError" in entry.stack


def test_counts_since_covers_every_category(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path / "errors.jsonl")
    error_logger.append(category=ErrorCategory.DRAFT_USER, error="USER_NOT_FOUND: u")
    error_logger.append(category=ErrorCategory.DRAFT_USER, error="USER_NOT_FOUND: v")
    error_logger.append(category=ErrorCategory.NETWORK, error="reset")

    counts = error_logger.counts_since()
    future = error_logger.counts_since(utc_now() + timedelta(hours=1))

    assert set(counts) == set(ErrorCategory)
    assert counts[ErrorCategory.DRAFT_USER] == 2
    assert counts[ErrorCategory.NETWORK] == 1
    assert counts[ErrorCategory.CONFIG] == 0
    assert sum(future.values()) == 0


def test_rotate_keeps_most_recent_entries(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path / "errors.jsonl")
    for index in range(5):
        error_logger.append(category=ErrorCategory.DRAFT_GENERATION, error=f"e{index}")

    assert error_logger.rotate(keep=2) == 3
    assert [entry.error for entry in error_logger.recent()] == ["e4", "e3"]
    assert error_logger.rotate(keep=2) == 0


def test_corrupt_lines_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "errors.jsonl"
    error_logger = ErrorLogger(path)
    error_logger.append(category=ErrorCategory.UNKNOWN, error="ok")
    with path.open("a", encoding="utf-8") as handle:
        handle.write("{not json\n")
        handle.write(json.dumps({"timestamp": utc_now().isoformat(), "category": "BOGUS"}) + "\n")

    entries = error_logger.recent()

    assert [entry.category for entry in entries] == [ErrorCategory.UNKNOWN, ErrorCategory.UNKNOWN]


def test_unwritable_path_never_raises(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path)

    error_logger.append(category=ErrorCategory.DRAFT_JOB, error="lost")

    assert error_logger.recent() == []
    assert error_logger.rotate(keep=1) == 0
    assert sum(error_logger.counts_since().values()) == 0


def test_missing_file_reads_as_empty(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path / "absent.jsonl")

    assert error_logger.recent() == []
    assert error_logger.rotate() == 0


def test_counts_since_accepts_naive_datetimes(tmp_path: Path) -> None:
    error_logger = ErrorLogger(tmp_path / "errors.jsonl")
    error_logger.append(category=ErrorCategory.NETWORK, error="reset")

    counts = error_logger.counts_since(datetime(2000, 1, 1))

    assert counts[ErrorCategory.NETWORK] == 1
