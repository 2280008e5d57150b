"""CLI entrypoint for proposal-drafts."""

import logging
from pathlib import Path

import rich_click as click

from proposal_drafts import __version__
from proposal_drafts.drafts.controllers import (
    DraftCliController,
    DraftEnqueueCommand,
    DraftInspectCommand,
    DraftListCommand,
    DraftWorkerCommand,
    SeedDemoCommand,
)
from proposal_drafts.errorlog.controllers import (
    ErrorLogCliController,
    ErrorsCountsCommand,
    ErrorsRecentCommand,
    ErrorsRotateCommand,
)
from proposal_drafts.errorlog.logger import ErrorCategory

click.rich_click.USE_MARKDOWN = True
DRAFT_CONTROLLER = DraftCliController()
ERROR_LOG_CONTROLLER = ErrorLogCliController()


@click.group()
@click.version_option(version=__version__, prog_name="proposal-drafts")
def proposal_drafts() -> None:
    """Proposal draft generation queue CLI."""


@proposal_drafts.group()
def drafts() -> None:
    """Draft queue and worker commands."""


@drafts.command("enqueue")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--job-id", type=int, required=True, help="Parent job to draft a proposal for.")
@click.option(
    "--idempotency-key",
    default=None,
    help="Repeat enqueues with the same key return the active draft instead of a new one.",
)
@click.option("--problem-statement", default=None, help="Free-text problem description.")
@click.option(
    "--issue",
    "issues",
    multiple=True,
    help="Selected issue as '<id>|<label>' or '<id>|<label>|<category>'. Can be repeated.",
)
def drafts_enqueue(
    db_path: Path | None,
    job_id: int,
    idempotency_key: str | None,
    problem_statement: str | None,
    issues: tuple[str, ...],
) -> None:
    """Request a proposal draft for a parent job."""

    try:
        lines = DRAFT_CONTROLLER.enqueue(
            DraftEnqueueCommand(
                db_path=db_path,
                job_id=job_id,
                idempotency_key=idempotency_key,
                problem_statement=problem_statement,
                issues=issues,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@drafts.command("worker")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single scan-claim-execute iteration and exit.",
)
@click.option(
    "--max-iterations",
    type=click.IntRange(min=1),
    default=None,
    help="Stop the poll loop after this many iterations.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging level for worker output.",
)
def drafts_worker(
    db_path: Path | None,
    once: bool,
    max_iterations: int | None,
    log_level: str,
) -> None:
    """Run the draft worker poll loop (Ctrl+C to stop)."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        lines = DRAFT_CONTROLLER.run_worker(
            DraftWorkerCommand(
                db_path=db_path,
                once=once,
                max_iterations=max_iterations,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@drafts.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice(["pending", "processing", "ready", "failed"], case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option("--job-id", type=int, default=None, help="Optional parent job filter.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=50,
    show_default=True,
    help="Max drafts to print.",
)
def drafts_list(
    db_path: Path | None,
    status: str | None,
    job_id: int | None,
    limit: int,
) -> None:
    """List drafts, newest first."""

    try:
        lines = DRAFT_CONTROLLER.list_drafts(
            DraftListCommand(
                db_path=db_path,
                status=status,
                job_id=job_id,
                limit=limit,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@drafts.command("inspect")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("draft_id", type=int)
def drafts_inspect(db_path: Path | None, draft_id: int) -> None:
    """Show one draft with its context, questions and payload."""

    try:
        lines = DRAFT_CONTROLLER.inspect(
            DraftInspectCommand(
                db_path=db_path,
                draft_id=draft_id,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@proposal_drafts.group()
def errors() -> None:
    """Error log commands."""


@errors.command("recent")
@click.option(
    "--log-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Error log JSONL path.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=20,
    show_default=True,
    help="Max entries to print.",
)
@click.option(
    "--category",
    type=click.Choice([category.value for category in ErrorCategory], case_sensitive=False),
    default=None,
    help="Optional category filter.",
)
def errors_recent(log_path: Path | None, limit: int, category: str | None) -> None:
    """Show the most recent error log entries."""

    try:
        lines = ERROR_LOG_CONTROLLER.recent(
            ErrorsRecentCommand(
                log_path=log_path,
                limit=limit,
                category=category,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@errors.command("counts")
@click.option(
    "--log-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Error log JSONL path.",
)
@click.option(
    "--hours",
    type=click.IntRange(min=1),
    default=None,
    help="Only count entries from the last N hours.",
)
def errors_counts(log_path: Path | None, hours: int | None) -> None:
    """Show error counts per category."""

    try:
        lines = ERROR_LOG_CONTROLLER.counts(
            ErrorsCountsCommand(
                log_path=log_path,
                hours=hours,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@errors.command("rotate")
@click.option(
    "--log-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Error log JSONL path.",
)
@click.option(
    "--keep",
    type=click.IntRange(min=0),
    default=None,
    help="Entries to keep (defaults to PROPOSAL_DRAFTS_ERROR_LOG_KEEP).",
)
def errors_rotate(log_path: Path | None, keep: int | None) -> None:
    """Truncate the error log to its most recent entries."""

    try:
        lines = ERROR_LOG_CONTROLLER.rotate(
            ErrorsRotateCommand(
                log_path=log_path,
                keep=keep,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@proposal_drafts.group()
def seed() -> None:
    """Local demo data commands."""


@seed.command("demo")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--enqueue/--no-enqueue",
    default=False,
    show_default=True,
    help="Also enqueue a draft for the seeded job.",
)
def seed_demo(db_path: Path | None, enqueue: bool) -> None:
    """Insert a demo user, template and parent job."""

    try:
        lines = DRAFT_CONTROLLER.seed_demo(
            SeedDemoCommand(
                db_path=db_path,
                enqueue=enqueue,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    proposal_drafts()
