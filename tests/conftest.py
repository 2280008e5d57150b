"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from proposal_drafts.drafts.models import ParentJobCreate, ParentJobView, TemplateCreate
from proposal_drafts.drafts.repository import DraftRepository

_PROPOSAL_DRAFTS_ENV = (
    "PROPOSAL_DRAFTS_DB_PATH",
    "PROPOSAL_DRAFTS_WORKER_ID",
    "PROPOSAL_DRAFTS_LEASE_SECONDS",
    "PROPOSAL_DRAFTS_MAX_ATTEMPTS",
    "PROPOSAL_DRAFTS_CANDIDATE_LIMIT",
    "PROPOSAL_DRAFTS_POLL_INTERVAL_SECONDS",
    "PROPOSAL_DRAFTS_SQLITE_BUSY_TIMEOUT_MS",
    "PROPOSAL_DRAFTS_ERROR_LOG_PATH",
    "PROPOSAL_DRAFTS_ERROR_LOG_KEEP",
    "PROPOSAL_DRAFTS_ENHANCER_URL",
    "PROPOSAL_DRAFTS_ENHANCER_API_KEY",
    "PROPOSAL_DRAFTS_ENHANCER_TIMEOUT_SECONDS",
    "PROPOSAL_DRAFTS_ENHANCER_MAX_RETRIES",
    "PROPOSAL_DRAFTS_PRICEBOOK_VERSION",
    "PROPOSAL_DRAFTS_LABOR_RATES",
)


class FakeClock:
    """Manually advanced UTC clock for worker tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 18, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _PROPOSAL_DRAFTS_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[DraftRepository]:
    repo = DraftRepository(tmp_path / "drafts.db")
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def seed_job(repository: DraftRepository) -> Callable[..., ParentJobView]:
    """Insert a user, a bathroom vanity template and a parent job; return the job."""

    def _seed(
        *,
        job_id: int = 42,
        job_size: int = 2,
        job_notes: str | None = None,
        price_multiplier: int = 100,
        trade_multipliers: dict[str, int] | None = None,
        with_template: bool = True,
    ) -> ParentJobView:
        user_id = f"user-{job_id}"
        repository.add_user(
            user_id=user_id,
            display_name="Test Contractor",
            price_multiplier=price_multiplier,
            trade_multipliers=trade_multipliers,
        )
        if with_template and (
            repository.find_active_template(trade_id="bathroom", job_type_id="vanity") is None
        ):
            repository.add_template(
                TemplateCreate(
                    trade_id="bathroom",
                    trade_name="Bathroom",
                    job_type_id="vanity",
                    job_type_name="Vanity replacement",
                    base_scope=[
                        "Remove existing vanity.",
                        "Install new vanity and faucet.",
                    ],
                    base_price_low=1000,
                    base_price_high=1400,
                    estimated_days_low=1,
                    estimated_days_high=2,
                    warranty="1 year workmanship",
                    exclusions=["Drywall repair"],
                ),
            )
        return repository.add_parent_job(
            ParentJobCreate(
                job_id=job_id,
                user_id=user_id,
                client_name="Sam Client",
                address="1 Main St",
                trade_id="bathroom",
                trade_name="Bathroom",
                job_type_id="vanity",
                job_type_name="Vanity replacement",
                job_size=job_size,
                job_notes=job_notes,
            ),
        )

    return _seed
