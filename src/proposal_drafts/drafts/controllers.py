"""Controllers for draft queue CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from proposal_drafts.config import Settings
from proposal_drafts.drafts.models import (
    DraftContext,
    DraftJobView,
    DraftStatus,
    ParentJobCreate,
    SelectedIssue,
    TemplateCreate,
)
from proposal_drafts.drafts.repository import DraftRepository
from proposal_drafts.drafts.scheduler import DraftScheduler
from proposal_drafts.drafts.worker import DraftWorker, WorkerRunSummary
from proposal_drafts.errorlog import ErrorLogger
from proposal_drafts.generator import TemplateDraftGenerator
from proposal_drafts.generator.enhancer import (
    HttpScopeEnhancer,
    ScopeEnhancer,
    UnconfiguredScopeEnhancer,
)

DEMO_USER_ID = "demo-user"


@dataclass(slots=True)
class DraftEnqueueCommand:
    """CLI input for draft enqueue."""

    db_path: Path | None
    job_id: int
    idempotency_key: str | None
    problem_statement: str | None
    issues: tuple[str, ...]


@dataclass(slots=True)
class DraftWorkerCommand:
    """CLI input for worker execution."""

    db_path: Path | None
    once: bool
    max_iterations: int | None


@dataclass(slots=True)
class DraftListCommand:
    """CLI input for draft listing."""

    db_path: Path | None
    status: str | None
    job_id: int | None
    limit: int


@dataclass(slots=True)
class DraftInspectCommand:
    """CLI input for draft inspection."""

    db_path: Path | None
    draft_id: int


@dataclass(slots=True)
class SeedDemoCommand:
    """CLI input for demo data seeding."""

    db_path: Path | None
    enqueue: bool


class DraftCliController:
    """Coordinates enqueue, worker, and inspection CLI operations."""

    def enqueue(self, command: DraftEnqueueCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        context = DraftContext(
            selected_issues=[_parse_issue(raw) for raw in command.issues],
            problem_statement=(command.problem_statement or "").strip() or None,
        )
        with _repository(settings) as repository:
            draft = repository.enqueue_draft(
                parent_job_id=command.job_id,
                idempotency_key=command.idempotency_key,
                context=context,
            )
        return [
            "Draft enqueued: "
            f"draft_id={draft.draft_id} job_id={draft.parent_job_id} "
            f"status={draft.status.value} attempts={draft.attempts}",
        ]

    def run_worker(self, command: DraftWorkerCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate()
        with _repository(settings) as repository, _enhancer(settings) as enhancer:
            worker = build_worker(
                settings=settings,
                repository=repository,
                enhancer=enhancer,
            )
            if command.once:
                summary = worker.run_once()
            else:
                scheduler = DraftScheduler(
                    worker,
                    poll_interval_seconds=settings.worker.poll_interval_seconds,
                )
                summary = scheduler.run_forever(max_iterations=command.max_iterations)

        return [_format_summary(worker_id=settings.worker.worker_id, summary=summary)]

    def list_drafts(self, command: DraftListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status_filter = _parse_status(command.status)
        with _repository(settings) as repository:
            drafts = repository.list_drafts(
                status=status_filter,
                parent_job_id=command.job_id,
                limit=command.limit,
            )

        lines = [f"Drafts: {len(drafts)}"]
        for draft in drafts:
            next_attempt = draft.next_attempt_at.isoformat() if draft.next_attempt_at else "-"
            lines.append(
                f"  {draft.draft_id} job={draft.parent_job_id} status={draft.status.value} "
                f"attempts={draft.attempts} next_attempt_at={next_attempt} "
                f"key={draft.idempotency_key or '-'}",
            )
        return lines

    def inspect(self, command: DraftInspectCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            draft = repository.get_draft(draft_id=command.draft_id)
        if draft is None:
            return [f"Draft not found: {command.draft_id}"]
        return _render_draft(draft)

    def seed_demo(self, command: SeedDemoCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            if repository.get_user(user_id=DEMO_USER_ID) is None:
                repository.add_user(user_id=DEMO_USER_ID, display_name="Demo Contractor")
            template = repository.find_active_template(
                trade_id="bathroom",
                job_type_id="vanity-replacement",
            )
            if template is None:
                template = repository.add_template(
                    TemplateCreate(
                        trade_id="bathroom",
                        trade_name="Bathroom",
                        job_type_id="vanity-replacement",
                        job_type_name="Vanity replacement",
                        base_scope=[
                            "Remove and dispose of existing vanity and top.",
                            "Install new vanity, top and faucet.",
                            "Reconnect supply lines and drain; test for leaks.",
                        ],
                        base_price_low=1000,
                        base_price_high=1400,
                        estimated_days_low=1,
                        estimated_days_high=2,
                        warranty="1 year workmanship",
                        exclusions=["Wall or floor repairs beyond the vanity footprint"],
                    ),
                )
            job = repository.add_parent_job(
                ParentJobCreate(
                    user_id=DEMO_USER_ID,
                    client_name="Jordan Avery",
                    address="12 Harbor Lane",
                    trade_id=template.trade_id,
                    trade_name=template.trade_name,
                    job_type_id=template.job_type_id,
                    job_type_name=template.job_type_name,
                    job_size=2,
                    job_notes="Replace 36in vanity; shutoff valves look original.",
                ),
            )
            lines = [
                f"Seeded demo data: user={DEMO_USER_ID} "
                f"template_id={template.template_id} job_id={job.job_id}",
            ]
            if command.enqueue:
                draft = repository.enqueue_draft(parent_job_id=job.job_id)
                lines.append(f"Draft enqueued: draft_id={draft.draft_id} job_id={job.job_id}")
        return lines


def build_worker(
    *,
    settings: Settings,
    repository: DraftRepository,
    enhancer: ScopeEnhancer,
) -> DraftWorker:
    """Wire a worker from settings; the caller owns repository and enhancer lifetimes."""

    return DraftWorker(
        repository=repository,
        generator=TemplateDraftGenerator(
            enhancer=enhancer,
            labor_rates=settings.pricing.labor_rates,
            pricebook_version=settings.pricing.pricebook_version,
        ),
        error_logger=ErrorLogger(settings.error_log.path),
        worker_id=settings.worker.worker_id,
        lease_seconds=settings.worker.lease_seconds,
        max_attempts=settings.worker.max_attempts,
        candidate_limit=settings.worker.candidate_limit,
    )


def _format_summary(*, worker_id: str, summary: WorkerRunSummary) -> str:
    return (
        f"Worker {worker_id} summary: "
        f"processed={summary.processed} succeeded={summary.succeeded} "
        f"retried={summary.retried} failed={summary.failed} "
        f"superseded={summary.superseded} idle_polls={summary.idle_polls}"
    )


def _render_draft(draft: DraftJobView) -> list[str]:
    lines = [
        f"Draft: {draft.draft_id}",
        f"Job: {draft.parent_job_id}",
        f"Status: {draft.status.value}",
        f"Attempts: {draft.attempts}",
        f"Idempotency key: {draft.idempotency_key or '-'}",
        f"Next attempt: {draft.next_attempt_at.isoformat() if draft.next_attempt_at else '-'}",
        f"Locked by: {draft.locked_by or '-'}",
        f"Error: {draft.error or '-'}",
        f"Confidence: {draft.confidence if draft.confidence is not None else '-'}",
        f"Pricebook: {draft.pricebook_version or '-'}",
    ]
    if draft.context.problem_statement:
        lines.append(f"Problem statement: {draft.context.problem_statement}")
    for issue in draft.context.selected_issues:
        lines.append(f"  issue {issue.id}: {issue.label}")
    for question in draft.questions:
        lines.append(f"  question: {question}")
    for item in (draft.payload or {}).get("line_items") or []:
        lines.append(
            f"  line item {item.get('job_type_name')} "
            f"price=[{item.get('price_low')}, {item.get('price_high')}] "
            f"days=[{item.get('estimated_days_low')}, {item.get('estimated_days_high')}]",
        )
    if draft.payload is not None:
        lines.append(f"Payload: {json.dumps(draft.payload, sort_keys=True)}")
    return lines


def _parse_status(value: str | None) -> DraftStatus | None:
    if value is None:
        return None
    return DraftStatus(value.strip().lower())


def _parse_issue(raw: str) -> SelectedIssue:
    """Parse ``<id>|<label>`` or ``<id>|<label>|<category>``."""

    parts = [part.strip() for part in raw.split("|")]
    if len(parts) not in {2, 3} or not parts[0] or not parts[1]:
        raise ValueError(
            f"Invalid issue {raw!r}. Expected format '<id>|<label>' or '<id>|<label>|<category>'.",
        )
    return SelectedIssue(id=parts[0], label=parts[1], category=parts[2] if len(parts) == 3 else "")


@contextmanager
def _repository(settings: Settings) -> Iterator[DraftRepository]:
    repository = DraftRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.worker.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _enhancer(settings: Settings) -> Iterator[ScopeEnhancer]:
    if settings.enhancer.endpoint_url is None:
        yield UnconfiguredScopeEnhancer()
        return
    with HttpScopeEnhancer(
        endpoint_url=settings.enhancer.endpoint_url,
        api_key=settings.enhancer.api_key,
        timeout_seconds=settings.enhancer.timeout_seconds,
        max_retries=settings.enhancer.max_retries,
    ) as enhancer:
        yield enhancer
