from __future__ import annotations

import logging
import time
from pathlib import Path

import allure
import pytest

from proposal_drafts.drafts.models import DraftStatus
from proposal_drafts.drafts.scheduler import DraftScheduler
from proposal_drafts.drafts.worker import DraftWorker, WorkerRunSummary
from proposal_drafts.errorlog import ErrorLogger
from proposal_drafts.generator import TemplateDraftGenerator

pytestmark = [
    allure.epic("Draft Queue"),
    allure.feature("Scheduler"),
]


class _ExplodingWorker:
    worker_id = "exploding"

    def __init__(self) -> None:
        self.calls = 0

    def run_once(self) -> WorkerRunSummary:
        self.calls += 1
        raise RuntimeError("database went away")


def _worker(repository, tmp_path: Path) -> DraftWorker:
    return DraftWorker(
        repository=repository,
        generator=TemplateDraftGenerator(),
        error_logger=ErrorLogger(tmp_path / "errors.jsonl"),
        worker_id="scheduler-test",
    )


def test_single_iteration_drafts_parent_42_end_to_end(
    repository,
    seed_job,
    tmp_path: Path,
) -> None:
    seed_job(job_id=42, job_size=2)
    draft = repository.enqueue_draft(parent_job_id=42)
    scheduler = DraftScheduler(_worker(repository, tmp_path), poll_interval_seconds=0)

    summary = scheduler.run_forever(max_iterations=1)

    assert summary.succeeded == 1
    ready = repository.get_draft(draft_id=draft.draft_id)
    assert ready is not None
    assert ready.status == DraftStatus.READY
    assert ready.payload is not None
    [line_item] = ready.payload["line_items"]
    assert line_item["price_low"] == 1000
    assert line_item["price_high"] == 1400
    assert line_item["job_type_name"] == "Vanity replacement"
    job = repository.get_parent_job(job_id=42)
    assert job is not None
    assert job.status == "drafted"


def test_background_thread_processes_queue_until_stopped(
    repository,
    seed_job,
    tmp_path: Path,
) -> None:
    seed_job(job_id=42)
    draft = repository.enqueue_draft(parent_job_id=42)
    scheduler = DraftScheduler(_worker(repository, tmp_path), poll_interval_seconds=0.05)

    assert scheduler.start()
    assert not scheduler.start()
    assert scheduler.is_running
    try:
        deadline = time.monotonic() + 10
        while time.monotonic() < deadline:
            current = repository.get_draft(draft_id=draft.draft_id)
            if current is not None and current.status == DraftStatus.READY:
                break
            time.sleep(0.05)
    finally:
        scheduler.stop()

    assert not scheduler.is_running
    current = repository.get_draft(draft_id=draft.draft_id)
    assert current is not None
    assert current.status == DraftStatus.READY
    assert scheduler.summary.succeeded == 1
    assert scheduler.summary.idle_polls >= 0


def test_loop_boundary_logs_and_continues(caplog: pytest.LogCaptureFixture) -> None:
    worker = _ExplodingWorker()
    scheduler = DraftScheduler(worker, poll_interval_seconds=0)

    with caplog.at_level(logging.ERROR, logger="proposal_drafts.drafts.scheduler"):
        summary = scheduler.run_forever(max_iterations=3)

    assert worker.calls == 3
    assert summary.idle_polls == 3
    assert "Draft scheduler iteration failed" in caplog.text


def test_stop_without_start_is_a_noop() -> None:
    scheduler = DraftScheduler(_ExplodingWorker(), poll_interval_seconds=0)

    scheduler.stop()

    assert not scheduler.is_running
