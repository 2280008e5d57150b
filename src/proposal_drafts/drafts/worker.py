"""Queue worker that claims draft jobs and drives them to a terminal state."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from proposal_drafts.drafts.errors import (
    ParentJobNotFoundError,
    TemplateNotFoundError,
    UserNotFoundError,
)
from proposal_drafts.drafts.failure_classifier import classify_draft_failure
from proposal_drafts.drafts.models import (
    PARENT_STATUS_DRAFTED,
    PARENT_STATUS_DRAFTING,
    ClaimToken,
    DraftJobView,
)
from proposal_drafts.drafts.repository import DraftRepository
from proposal_drafts.drafts.retry import MAX_ATTEMPTS, decide_retry
from proposal_drafts.errorlog import ErrorLogger
from proposal_drafts.generator import DraftGenerator, DraftInputs
from proposal_drafts.generator.models import (
    JobDescriptor,
    PhotoDescriptor,
    TemplateSpec,
    UserMultipliers,
)
from proposal_drafts.storage.common import utc_now

logger = logging.getLogger(__name__)

DEFAULT_LEASE_SECONDS = 120
DEFAULT_CANDIDATE_LIMIT = 5


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    retried: int = 0
    failed: int = 0
    superseded: int = 0
    idle_polls: int = 0

    def merge(self, other: WorkerRunSummary) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.retried += other.retried
        self.failed += other.failed
        self.superseded += other.superseded
        self.idle_polls += other.idle_polls


class DraftWorker:
    """Claims at most one draft per iteration and runs the generator on it."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: DraftRepository,
        generator: DraftGenerator,
        error_logger: ErrorLogger,
        worker_id: str,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        max_attempts: int = MAX_ATTEMPTS,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.generator = generator
        self.error_logger = error_logger
        self.worker_id = worker_id
        self.lease = timedelta(seconds=lease_seconds)
        self.max_attempts = max_attempts
        self.candidate_limit = candidate_limit
        self.clock = clock

    def run_once(self) -> WorkerRunSummary:
        """Scan for eligible drafts, claim the first one available and process it."""

        summary = WorkerRunSummary()
        draft = self._claim_next()
        if draft is None:
            summary.idle_polls = 1
            return summary

        summary.processed = 1
        token = ClaimToken(
            draft_id=draft.draft_id,
            worker_id=self.worker_id,
            locked_at=draft.locked_at or self.clock(),
        )
        try:
            inputs = self._load_inputs(draft)
            result = self.generator.generate(inputs)
        except Exception as error:  # noqa: BLE001
            self._handle_failure(draft=draft, token=token, error=error, summary=summary)
            return summary

        if not self.repository.complete_draft(
            token=token,
            payload=result.to_payload(),
            now=self.clock(),
        ):
            self._log_superseded(draft=draft, outcome="ready")
            summary.superseded = 1
            return summary

        self.repository.set_parent_job_status(
            job_id=draft.parent_job_id,
            status=PARENT_STATUS_DRAFTED,
        )
        logger.info(
            "Draft %s for job %s is ready (attempt %s)",
            draft.draft_id,
            draft.parent_job_id,
            draft.attempts,
        )
        summary.succeeded = 1
        return summary

    def _claim_next(self) -> DraftJobView | None:
        now = self.clock()
        candidates = self.repository.list_claim_candidates(
            now=now,
            lease=self.lease,
            limit=self.candidate_limit,
        )
        for candidate in candidates:
            claimed = self.repository.try_claim(
                draft_id=candidate.draft_id,
                worker_id=self.worker_id,
                now=now,
                lease=self.lease,
            )
            if claimed is not None:
                return claimed
            logger.debug("Draft %s was claimed by another worker", candidate.draft_id)
        return None

    def _load_inputs(self, draft: DraftJobView) -> DraftInputs:
        job = self.repository.get_parent_job(job_id=draft.parent_job_id)
        if job is None:
            raise ParentJobNotFoundError(draft.parent_job_id)
        user = self.repository.get_user(user_id=job.user_id)
        if user is None:
            raise UserNotFoundError(job.user_id)
        template = self.repository.find_active_template(
            trade_id=job.trade_id,
            job_type_id=job.job_type_id,
        )
        if template is None:
            raise TemplateNotFoundError(f"{job.trade_id}/{job.job_type_id}")
        photos = self.repository.list_photos(job_id=job.job_id)

        notes = "\n\n".join(
            part for part in (job.job_notes or "", draft.context.notes_suffix()) if part.strip()
        )
        return DraftInputs(
            job=JobDescriptor(
                job_id=job.job_id,
                client_name=job.client_name,
                address=job.address,
                trade_id=job.trade_id,
                trade_name=job.trade_name,
                job_type_id=job.job_type_id,
                job_type_name=job.job_type_name,
                job_size=job.job_size,
                job_notes=notes or None,
            ),
            template=TemplateSpec(
                trade_id=template.trade_id,
                trade_name=template.trade_name,
                job_type_id=template.job_type_id,
                job_type_name=template.job_type_name,
                base_scope=list(template.base_scope),
                base_price_low=template.base_price_low,
                base_price_high=template.base_price_high,
                estimated_days_low=template.estimated_days_low,
                estimated_days_high=template.estimated_days_high,
                warranty=template.warranty,
                exclusions=list(template.exclusions),
            ),
            user=UserMultipliers(
                price_multiplier=user.price_multiplier,
                trade_multipliers=dict(user.trade_multipliers),
            ),
            photos=[
                PhotoDescriptor(
                    public_url=photo.public_url,
                    kind=photo.kind,
                    findings=photo.findings,
                )
                for photo in photos
            ],
        )

    def _handle_failure(
        self,
        *,
        draft: DraftJobView,
        token: ClaimToken,
        error: Exception,
        summary: WorkerRunSummary,
    ) -> None:
        message = str(error) or type(error).__name__
        self.error_logger.append(
            category=classify_draft_failure(error),
            error=error,
            job_id=draft.parent_job_id,
            draft_id=draft.draft_id,
            details={"attempts": draft.attempts, "worker_id": self.worker_id},
        )

        now = self.clock()
        decision = decide_retry(attempts=draft.attempts, now=now, max_attempts=self.max_attempts)
        if decision.terminal:
            if not self.repository.fail_draft(token=token, error=message, now=now):
                self._log_superseded(draft=draft, outcome="failed")
                summary.superseded = 1
                return
            logger.warning(
                "Draft %s for job %s failed after %s attempts: %s",
                draft.draft_id,
                draft.parent_job_id,
                draft.attempts,
                message,
            )
            summary.failed = 1
            return

        if decision.next_attempt_at is None:
            raise RuntimeError("Non-terminal retry decision must carry next_attempt_at.")
        if not self.repository.schedule_retry(
            token=token,
            next_attempt_at=decision.next_attempt_at,
            error=message,
            now=now,
        ):
            self._log_superseded(draft=draft, outcome="retry")
            summary.superseded = 1
            return
        self.repository.set_parent_job_status(
            job_id=draft.parent_job_id,
            status=PARENT_STATUS_DRAFTING,
        )
        logger.info(
            "Draft %s attempt %s failed, retrying in %ss",
            draft.draft_id,
            draft.attempts,
            decision.delay_seconds,
        )
        summary.retried = 1

    def _log_superseded(self, *, draft: DraftJobView, outcome: str) -> None:
        logger.warning(
            "Discarding %s outcome for draft %s: claim by %s was superseded",
            outcome,
            draft.draft_id,
            self.worker_id,
        )
