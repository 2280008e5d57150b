"""Controllers for error log CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from proposal_drafts.config import Settings
from proposal_drafts.errorlog.logger import ErrorCategory, ErrorLogger
from proposal_drafts.storage.common import utc_now


@dataclass(slots=True)
class ErrorsRecentCommand:
    """CLI input for recent error listing."""

    log_path: Path | None
    limit: int
    category: str | None


@dataclass(slots=True)
class ErrorsCountsCommand:
    """CLI input for per-category error counts."""

    log_path: Path | None
    hours: int | None


@dataclass(slots=True)
class ErrorsRotateCommand:
    """CLI input for error log truncation."""

    log_path: Path | None
    keep: int | None


class ErrorLogCliController:
    """Reads and maintains the JSONL error log."""

    def recent(self, command: ErrorsRecentCommand) -> list[str]:
        error_logger = _error_logger(command.log_path)
        category = ErrorCategory(command.category.strip().upper()) if command.category else None
        entries = error_logger.recent(limit=command.limit, category=category)

        lines = [f"Errors: {len(entries)}"]
        for entry in entries:
            lines.append(
                f"  {entry.timestamp.isoformat()} [{entry.category.value}] "
                f"job={entry.job_id if entry.job_id is not None else '-'} "
                f"draft={entry.draft_id if entry.draft_id is not None else '-'} "
                f"{entry.error}",
            )
        return lines

    def counts(self, command: ErrorsCountsCommand) -> list[str]:
        error_logger = _error_logger(command.log_path)
        since = utc_now() - timedelta(hours=command.hours) if command.hours else None
        counts = error_logger.counts_since(since)
        window = f"last {command.hours}h" if command.hours else "all time"
        lines = [f"Error counts ({window}): total={sum(counts.values())}"]
        for category, count in counts.items():
            if count:
                lines.append(f"  {category.value}: {count}")
        return lines

    def rotate(self, command: ErrorsRotateCommand) -> list[str]:
        settings = Settings.from_env()
        error_logger = ErrorLogger(command.log_path or settings.error_log.path)
        keep = command.keep if command.keep is not None else settings.error_log.keep_entries
        removed = error_logger.rotate(keep=keep)
        return [f"Error log rotated: removed={removed} keep={keep} path={error_logger.path}"]


def _error_logger(log_path: Path | None) -> ErrorLogger:
    if log_path is not None:
        return ErrorLogger(log_path)
    return ErrorLogger(Settings.from_env().error_log.path)
