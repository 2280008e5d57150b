"""Append-only JSONL diagnostic log that never raises into the caller."""

from __future__ import annotations

import json
import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from proposal_drafts.storage.common import from_iso, to_utc_aware_datetime, utc_now

logger = logging.getLogger(__name__)

DEFAULT_KEEP_ENTRIES = 10_000


class ErrorCategory(str, Enum):
    """Diagnostic categories recorded in the error log."""

    DRAFT_GENERATION = "DRAFT_GENERATION"
    DRAFT_JOB = "DRAFT_JOB"
    DRAFT_TEMPLATE = "DRAFT_TEMPLATE"
    DRAFT_USER = "DRAFT_USER"
    SCOPE_ENHANCEMENT = "SCOPE_ENHANCEMENT"
    NETWORK = "NETWORK"
    CONFIG = "CONFIG"
    UNKNOWN = "UNKNOWN"


@dataclass(slots=True)
class ErrorLogEntry:
    """One parsed log line."""

    timestamp: datetime
    category: ErrorCategory
    error: str
    job_id: int | None = None
    draft_id: int | None = None
    photo_id: int | None = None
    details: dict[str, Any] = field(default_factory=dict)
    stack: str | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "error": self.error,
        }
        if self.job_id is not None:
            payload["job_id"] = self.job_id
        if self.draft_id is not None:
            payload["draft_id"] = self.draft_id
        if self.photo_id is not None:
            payload["photo_id"] = self.photo_id
        if self.details:
            payload["details"] = self.details
        if self.stack:
            payload["stack"] = self.stack
        return payload

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> ErrorLogEntry:
        try:
            category = ErrorCategory(raw.get("category", ErrorCategory.UNKNOWN.value))
        except ValueError:
            category = ErrorCategory.UNKNOWN
        details = raw.get("details")
        return cls(
            timestamp=from_iso(str(raw["timestamp"])),
            category=category,
            error=str(raw.get("error", "")),
            job_id=raw.get("job_id"),
            draft_id=raw.get("draft_id"),
            photo_id=raw.get("photo_id"),
            details=details if isinstance(details, dict) else {},
            stack=raw.get("stack"),
        )


class ErrorLogger:
    """Durable error log backed by one JSON-lines file.

    Every public method is best-effort: I/O failures are reported through
    ``logging`` and never propagate, so diagnostics can be written from any
    failure path without masking the original error.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def append(  # noqa: PLR0913
        self,
        *,
        category: ErrorCategory,
        error: str | BaseException,
        job_id: int | None = None,
        draft_id: int | None = None,
        photo_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one entry; also mirrors it to the module logger."""

        try:
            message = str(error) if isinstance(error, BaseException) else error
            stack = None
            if isinstance(error, BaseException) and error.__traceback__ is not None:
                stack = "".join(traceback.format_exception(error)).strip()
            entry = ErrorLogEntry(
                timestamp=utc_now(),
                category=category,
                error=message,
                job_id=job_id,
                draft_id=draft_id,
                photo_id=photo_id,
                details=dict(details or {}),
                stack=stack,
            )
            logger.error(
                "[%s] job_id=%s draft_id=%s photo_id=%s %s",
                category.value,
                job_id,
                draft_id,
                photo_id,
                message,
            )
            self.path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps(entry.to_json(), ensure_ascii=False, sort_keys=True, default=str)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except Exception:  # noqa: BLE001
            logger.warning("Could not write error log entry to %s", self.path, exc_info=True)

    def recent(
        self,
        limit: int = 100,
        category: ErrorCategory | None = None,
    ) -> list[ErrorLogEntry]:
        """Return up to ``limit`` entries, newest first, optionally by category."""

        entries: list[ErrorLogEntry] = []
        for entry in reversed(self._read_entries()):
            if len(entries) >= limit:
                break
            if category is None or entry.category == category:
                entries.append(entry)
        return entries

    def counts_since(self, since: datetime | None = None) -> dict[ErrorCategory, int]:
        """Count entries per category at or after ``since``."""

        if since is not None:
            since = to_utc_aware_datetime(since)
        counts = dict.fromkeys(ErrorCategory, 0)
        for entry in self._read_entries():
            if since is None or entry.timestamp >= since:
                counts[entry.category] += 1
        return counts

    def rotate(self, keep: int = DEFAULT_KEEP_ENTRIES) -> int:
        """Truncate the log to the most recent ``keep`` lines; return lines removed."""

        try:
            if not self.path.exists():
                return 0
            lines = [line for line in self._read_lines() if line.strip()]
            if len(lines) <= keep:
                return 0
            kept = lines[-keep:] if keep > 0 else []
            self.path.write_text("".join(f"{line}\n" for line in kept), encoding="utf-8")
        except Exception:  # noqa: BLE001
            logger.warning("Could not rotate error log %s", self.path, exc_info=True)
            return 0
        removed = len(lines) - len(kept)
        logger.info("Rotated error log %s: kept %d of %d entries", self.path, len(kept), len(lines))
        return removed

    def _read_lines(self) -> list[str]:
        return self.path.read_text(encoding="utf-8").splitlines()

    def _read_entries(self) -> list[ErrorLogEntry]:
        try:
            if not self.path.exists():
                return []
            lines = self._read_lines()
        except Exception:  # noqa: BLE001
            logger.warning("Could not read error log %s", self.path, exc_info=True)
            return []

        entries: list[ErrorLogEntry] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
                if isinstance(raw, dict):
                    entries.append(ErrorLogEntry.from_json(raw))
            except (ValueError, KeyError, TypeError):
                continue
        return entries
