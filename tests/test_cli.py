from __future__ import annotations

import re
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from proposal_drafts.main import proposal_drafts

pytestmark = [
    allure.epic("Operations"),
    allure.feature("CLI"),
]


@pytest.fixture()
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, Path]:
    paths = {"db": tmp_path / "cli.db", "errors": tmp_path / "errors.jsonl"}
    monkeypatch.setenv("PROPOSAL_DRAFTS_DB_PATH", str(paths["db"]))
    monkeypatch.setenv("PROPOSAL_DRAFTS_ERROR_LOG_PATH", str(paths["errors"]))
    monkeypatch.setenv("PROPOSAL_DRAFTS_WORKER_ID", "cli-worker")
    return paths


def _job_id(output: str) -> int:
    match = re.search(r"job_id=(\d+)", output)
    assert match is not None, output
    return int(match.group(1))


def test_seed_enqueue_worker_and_inspect(cli_env: dict[str, Path]) -> None:
    runner = CliRunner()

    seeded = runner.invoke(proposal_drafts, ["seed", "demo"])
    assert seeded.exit_code == 0, seeded.output
    job_id = _job_id(seeded.output)

    enqueued = runner.invoke(
        proposal_drafts,
        [
            "drafts",
            "enqueue",
            "--job-id",
            str(job_id),
            "--idempotency-key",
            "cli-1",
            "--problem-statement",
            "Vanity drawer is broken",
            "--issue",
            "drawer|Broken drawer|cabinetry",
        ],
    )
    assert enqueued.exit_code == 0, enqueued.output
    assert "status=pending" in enqueued.output
    draft_id = int(re.search(r"draft_id=(\d+)", enqueued.output).group(1))

    repeated = runner.invoke(
        proposal_drafts,
        ["drafts", "enqueue", "--job-id", str(job_id), "--idempotency-key", "cli-1"],
    )
    assert f"draft_id={draft_id} " in repeated.output

    worked = runner.invoke(proposal_drafts, ["drafts", "worker", "--once"])
    assert worked.exit_code == 0, worked.output
    assert "Worker cli-worker summary: processed=1 succeeded=1" in worked.output

    inspected = runner.invoke(proposal_drafts, ["drafts", "inspect", str(draft_id)])
    assert inspected.exit_code == 0, inspected.output
    assert "Status: ready" in inspected.output
    assert "price=[1000, 1400]" in inspected.output
    assert "issue drawer: Broken drawer" in inspected.output

    listed = runner.invoke(proposal_drafts, ["drafts", "list", "--status", "ready"])
    assert listed.exit_code == 0, listed.output
    assert "Drafts: 1" in listed.output


def test_worker_failure_shows_up_in_error_commands(cli_env: dict[str, Path]) -> None:
    runner = CliRunner()

    runner.invoke(proposal_drafts, ["drafts", "enqueue", "--job-id", "404"])
    worked = runner.invoke(
        proposal_drafts,
        ["drafts", "worker", "--max-iterations", "1", "--log-level", "warning"],
    )
    assert worked.exit_code == 0, worked.output
    assert "retried=1" in worked.output

    recent = runner.invoke(proposal_drafts, ["errors", "recent", "--category", "DRAFT_JOB"])
    assert recent.exit_code == 0, recent.output
    assert "Errors: 1" in recent.output
    assert "JOB_NOT_FOUND: 404" in recent.output

    counts = runner.invoke(proposal_drafts, ["errors", "counts"])
    assert "DRAFT_JOB: 1" in counts.output

    rotated = runner.invoke(proposal_drafts, ["errors", "rotate", "--keep", "0"])
    assert rotated.exit_code == 0, rotated.output
    assert "removed=1" in rotated.output


def test_invalid_issue_format_is_a_usage_error(cli_env: dict[str, Path]) -> None:
    result = CliRunner().invoke(
        proposal_drafts,
        ["drafts", "enqueue", "--job-id", "1", "--issue", "no-label"],
    )

    assert result.exit_code != 0
    assert "Invalid issue" in result.output


def test_invalid_settings_stop_the_worker(
    cli_env: dict[str, Path],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("PROPOSAL_DRAFTS_LEASE_SECONDS", "0")

    result = CliRunner().invoke(proposal_drafts, ["drafts", "worker", "--once"])

    assert result.exit_code != 0
    assert "PROPOSAL_DRAFTS_LEASE_SECONDS" in result.output


def test_inspect_unknown_draft(cli_env: dict[str, Path]) -> None:
    result = CliRunner().invoke(proposal_drafts, ["drafts", "inspect", "999"])

    assert result.exit_code == 0
    assert "Draft not found: 999" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ["drafts", "list"],
        ["drafts", "inspect", "1"],
        ["errors", "recent"],
        ["errors", "counts"],
        ["errors", "rotate"],
        ["seed", "demo"],
    ],
)
def test_malformed_labor_rates_are_reported_without_traceback(
    cli_env: dict[str, Path],
    monkeypatch: pytest.MonkeyPatch,
    args: list[str],
) -> None:
    monkeypatch.setenv("PROPOSAL_DRAFTS_LABOR_RATES", "bathroom")

    result = CliRunner().invoke(proposal_drafts, args)

    assert result.exit_code == 1
    assert "Expected format" in result.output
    assert not isinstance(result.exception, ValueError)
