"""Runtime configuration for the draft queue, worker and generator."""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from proposal_drafts.drafts.retry import MAX_ATTEMPTS
from proposal_drafts.drafts.worker import DEFAULT_CANDIDATE_LIMIT, DEFAULT_LEASE_SECONDS
from proposal_drafts.errorlog.logger import DEFAULT_KEEP_ENTRIES


def default_worker_id() -> str:
    return f"drafts-{socket.gethostname()}-{os.getpid()}"


@dataclass(slots=True)
class DraftWorkerSettings:
    """Claim and retry settings for the worker loop."""

    worker_id: str = field(default_factory=default_worker_id)
    lease_seconds: int = DEFAULT_LEASE_SECONDS
    max_attempts: int = MAX_ATTEMPTS
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT
    poll_interval_seconds: float = 0.5
    sqlite_busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class ErrorLogSettings:
    """Diagnostic JSONL error log settings."""

    path: Path = Path(".proposal_drafts_errors.jsonl")
    keep_entries: int = DEFAULT_KEEP_ENTRIES


@dataclass(slots=True)
class ScopeEnhancerSettings:
    """Optional HTTP scope enhancement endpoint."""

    endpoint_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float = 20.0
    max_retries: int = 1


@dataclass(slots=True)
class PricingSettings:
    """Pricebook label and observed labor rates per trade."""

    pricebook_version: str = "v1"
    labor_rates: dict[str, tuple[float, ...]] = field(default_factory=dict)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".proposal_drafts.db")
    worker: DraftWorkerSettings = field(default_factory=DraftWorkerSettings)
    error_log: ErrorLogSettings = field(default_factory=ErrorLogSettings)
    enhancer: ScopeEnhancerSettings = field(default_factory=ScopeEnhancerSettings)
    pricing: PricingSettings = field(default_factory=PricingSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("PROPOSAL_DRAFTS_DB_PATH", ".proposal_drafts.db")),
            worker=DraftWorkerSettings(
                worker_id=os.getenv("PROPOSAL_DRAFTS_WORKER_ID", "").strip()
                or default_worker_id(),
                lease_seconds=int(
                    os.getenv("PROPOSAL_DRAFTS_LEASE_SECONDS", str(DEFAULT_LEASE_SECONDS)),
                ),
                max_attempts=int(os.getenv("PROPOSAL_DRAFTS_MAX_ATTEMPTS", str(MAX_ATTEMPTS))),
                candidate_limit=int(
                    os.getenv("PROPOSAL_DRAFTS_CANDIDATE_LIMIT", str(DEFAULT_CANDIDATE_LIMIT)),
                ),
                poll_interval_seconds=float(
                    os.getenv("PROPOSAL_DRAFTS_POLL_INTERVAL_SECONDS", "0.5"),
                ),
                sqlite_busy_timeout_ms=int(
                    os.getenv("PROPOSAL_DRAFTS_SQLITE_BUSY_TIMEOUT_MS", "5000"),
                ),
            ),
            error_log=ErrorLogSettings(
                path=Path(
                    os.getenv("PROPOSAL_DRAFTS_ERROR_LOG_PATH", ".proposal_drafts_errors.jsonl"),
                ),
                keep_entries=int(
                    os.getenv("PROPOSAL_DRAFTS_ERROR_LOG_KEEP", str(DEFAULT_KEEP_ENTRIES)),
                ),
            ),
            enhancer=ScopeEnhancerSettings(
                endpoint_url=os.getenv("PROPOSAL_DRAFTS_ENHANCER_URL", "").strip() or None,
                api_key=os.getenv("PROPOSAL_DRAFTS_ENHANCER_API_KEY", "").strip() or None,
                timeout_seconds=float(
                    os.getenv("PROPOSAL_DRAFTS_ENHANCER_TIMEOUT_SECONDS", "20.0"),
                ),
                max_retries=int(os.getenv("PROPOSAL_DRAFTS_ENHANCER_MAX_RETRIES", "1")),
            ),
            pricing=PricingSettings(
                pricebook_version=os.getenv("PROPOSAL_DRAFTS_PRICEBOOK_VERSION", "v1").strip()
                or "v1",
                labor_rates=_collect_labor_rates(),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the worker cannot run with."""

        if self.worker.lease_seconds <= 0:
            raise ValueError("PROPOSAL_DRAFTS_LEASE_SECONDS must be > 0.")
        if self.worker.max_attempts <= 0:
            raise ValueError("PROPOSAL_DRAFTS_MAX_ATTEMPTS must be > 0.")
        if self.worker.candidate_limit <= 0:
            raise ValueError("PROPOSAL_DRAFTS_CANDIDATE_LIMIT must be > 0.")
        if self.worker.poll_interval_seconds < 0:
            raise ValueError("PROPOSAL_DRAFTS_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.worker.sqlite_busy_timeout_ms <= 0:
            raise ValueError("PROPOSAL_DRAFTS_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if not self.worker.worker_id.strip():
            raise ValueError("PROPOSAL_DRAFTS_WORKER_ID must not be empty.")
        if self.error_log.keep_entries <= 0:
            raise ValueError("PROPOSAL_DRAFTS_ERROR_LOG_KEEP must be > 0.")
        if self.enhancer.endpoint_url is not None:
            _validate_endpoint_url(self.enhancer.endpoint_url)
        if self.enhancer.timeout_seconds <= 0:
            raise ValueError("PROPOSAL_DRAFTS_ENHANCER_TIMEOUT_SECONDS must be > 0.")
        if self.enhancer.max_retries < 0:
            raise ValueError("PROPOSAL_DRAFTS_ENHANCER_MAX_RETRIES must be >= 0.")


def _collect_labor_rates() -> dict[str, tuple[float, ...]]:
    raw = os.getenv("PROPOSAL_DRAFTS_LABOR_RATES", "").strip()
    if not raw:
        return {}

    rates: dict[str, list[float]] = {}
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        if "|" not in token:
            raise ValueError(
                "Invalid PROPOSAL_DRAFTS_LABOR_RATES entry: "
                f"{token!r}. Expected format '<trade_id>|<hourly_rate>'.",
            )
        trade_id, rate_raw = token.rsplit("|", 1)
        trade_id = trade_id.strip()
        rate_raw = rate_raw.strip()
        if not trade_id:
            raise ValueError(f"Invalid PROPOSAL_DRAFTS_LABOR_RATES entry: {token!r}")
        try:
            rate = float(rate_raw)
        except ValueError as error:
            raise ValueError(
                f"Invalid PROPOSAL_DRAFTS_LABOR_RATES value for {trade_id!r}: {rate_raw!r}",
            ) from error
        if rate <= 0:
            raise ValueError(
                "Invalid PROPOSAL_DRAFTS_LABOR_RATES value for "
                f"{trade_id!r}: {rate!r} (must be > 0)",
            )
        rates.setdefault(trade_id, []).append(rate)
    return {trade_id: tuple(values) for trade_id, values in rates.items()}


def _validate_endpoint_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid PROPOSAL_DRAFTS_ENHANCER_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
