"""Persistent draft job store backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from sqlalchemy import and_, or_
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from proposal_drafts.drafts.models import (
    PARENT_STATUS_DRAFTING,
    TERMINAL_STATUSES,
    ClaimToken,
    DraftContext,
    DraftJobView,
    DraftStatus,
    ParentJobCreate,
    ParentJobView,
    PhotoView,
    TemplateCreate,
    TemplateView,
    UserView,
)
from proposal_drafts.storage.alembic_runner import upgrade_head
from proposal_drafts.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_optional_utc,
    to_utc_aware_datetime,
    utc_now,
)
from proposal_drafts.storage.sqlmodel_models import (
    AppUser,
    DraftJob,
    JobPhoto,
    ParentJob,
    ProposalTemplate,
)

logger = logging.getLogger(__name__)


class DraftRepository:
    """Draft queue persistence facade.

    All coordination between workers happens here, as conditional updates on
    the lock columns of ``draft_jobs``. Methods that mutate a claimed draft
    return ``False`` when their precondition no longer holds.
    """

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    # -- enqueue ---------------------------------------------------------------

    def enqueue_draft(
        self,
        *,
        parent_job_id: int,
        idempotency_key: str | None = None,
        context: DraftContext | None = None,
        now: datetime | None = None,
    ) -> DraftJobView:
        """Create a pending draft or return the active one for the same key."""

        if idempotency_key:
            existing = self._find_active_by_key(
                parent_job_id=parent_job_id,
                idempotency_key=idempotency_key,
            )
            if existing is not None:
                return existing

        now = now or utc_now()
        with Session(self.engine) as session:
            row = DraftJob(
                parent_job_id=parent_job_id,
                idempotency_key=idempotency_key or None,
                status=DraftStatus.PENDING.value,
                attempts=0,
                next_attempt_at=to_db_datetime(now),
                context=(context or DraftContext()).to_json(),
                questions=[],
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            try:
                session.flush()
            except IntegrityError:
                # A concurrent enqueue with the same key committed first.
                session.rollback()
                if not idempotency_key:
                    raise
                winner = self._find_active_by_key(
                    parent_job_id=parent_job_id,
                    idempotency_key=idempotency_key,
                )
                if winner is None:
                    raise
                logger.debug(
                    "Enqueue for job %s key %s collapsed onto draft %s",
                    parent_job_id,
                    idempotency_key,
                    winner.draft_id,
                )
                return winner

            session.exec(
                sa_update(ParentJob)
                .where(col(ParentJob.job_id) == parent_job_id)
                .values(status=PARENT_STATUS_DRAFTING, updated_at=to_db_datetime(now)),
            )
            session.commit()
            session.refresh(row)
            return _to_draft_view(row)

    def _find_active_by_key(
        self,
        *,
        parent_job_id: int,
        idempotency_key: str,
    ) -> DraftJobView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(DraftJob)
                .where(
                    DraftJob.parent_job_id == parent_job_id,
                    DraftJob.idempotency_key == idempotency_key,
                    DraftJob.status != DraftStatus.FAILED.value,
                )
                .order_by(col(DraftJob.created_at).desc(), col(DraftJob.draft_id).desc())
                .limit(1),
            ).one_or_none()
            return _to_draft_view(row) if row is not None else None

    # -- claim -----------------------------------------------------------------

    def list_claim_candidates(
        self,
        *,
        now: datetime,
        lease: timedelta,
        limit: int,
    ) -> list[DraftJobView]:
        """Due pending drafts plus processing drafts whose lease expired, newest first."""

        db_now = to_db_datetime(now)
        cutoff = to_db_datetime(now - lease)
        with Session(self.engine) as session:
            rows = session.exec(
                select(DraftJob)
                .where(
                    or_(
                        and_(
                            col(DraftJob.status) == DraftStatus.PENDING.value,
                            or_(
                                col(DraftJob.next_attempt_at).is_(None),
                                col(DraftJob.next_attempt_at) <= db_now,
                            ),
                        ),
                        and_(
                            col(DraftJob.status) == DraftStatus.PROCESSING.value,
                            or_(
                                col(DraftJob.locked_at).is_(None),
                                col(DraftJob.locked_at) <= cutoff,
                            ),
                        ),
                    ),
                )
                .order_by(col(DraftJob.created_at).desc(), col(DraftJob.draft_id).desc())
                .limit(limit),
            ).all()
        return [_to_draft_view(row) for row in rows]

    def try_claim(
        self,
        *,
        draft_id: int,
        worker_id: str,
        now: datetime,
        lease: timedelta,
    ) -> DraftJobView | None:
        """Atomically take the lease on one draft; ``None`` when another worker holds it."""

        db_now = to_db_datetime(now)
        cutoff = to_db_datetime(now - lease)
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(DraftJob)
                .where(
                    col(DraftJob.draft_id) == draft_id,
                    col(DraftJob.status).not_in([status.value for status in TERMINAL_STATUSES]),
                    or_(
                        col(DraftJob.locked_at).is_(None),
                        col(DraftJob.locked_at) <= cutoff,
                    ),
                )
                .values(
                    status=DraftStatus.PROCESSING.value,
                    locked_by=worker_id,
                    locked_at=db_now,
                    attempts=col(DraftJob.attempts) + 1,
                    started_at=db_now,
                    updated_at=db_now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            claimed = session.exec(
                select(DraftJob).where(DraftJob.draft_id == draft_id),
            ).one()
            return _to_draft_view(claimed)

    # -- outcomes --------------------------------------------------------------

    def complete_draft(
        self,
        *,
        token: ClaimToken,
        payload: dict[str, Any],
        now: datetime | None = None,
    ) -> bool:
        """Mark a claimed draft ready; ``False`` when the claim was superseded."""

        db_now = to_db_datetime(now or utc_now())
        questions = payload.get("questions")
        confidence = payload.get("confidence")
        pricing = payload.get("pricing")
        return self._update_claimed(
            token=token,
            values={
                "status": DraftStatus.READY.value,
                "payload": payload,
                "confidence": int(confidence) if isinstance(confidence, int | float) else None,
                "questions": [str(item) for item in questions] if isinstance(questions, list) else [],
                "pricebook_version": (
                    pricing.get("pricebook_version") if isinstance(pricing, dict) else None
                ),
                "error": None,
                "next_attempt_at": None,
                "finished_at": db_now,
                "locked_by": None,
                "locked_at": None,
                "updated_at": db_now,
            },
        )

    def schedule_retry(
        self,
        *,
        token: ClaimToken,
        next_attempt_at: datetime,
        error: str,
        now: datetime | None = None,
    ) -> bool:
        """Release a claimed draft back to pending with a backoff."""

        db_now = to_db_datetime(now or utc_now())
        return self._update_claimed(
            token=token,
            values={
                "status": DraftStatus.PENDING.value,
                "error": error,
                "next_attempt_at": to_db_datetime(next_attempt_at),
                "finished_at": None,
                "locked_by": None,
                "locked_at": None,
                "updated_at": db_now,
            },
        )

    def fail_draft(
        self,
        *,
        token: ClaimToken,
        error: str,
        now: datetime | None = None,
    ) -> bool:
        """Mark a claimed draft terminally failed."""

        db_now = to_db_datetime(now or utc_now())
        return self._update_claimed(
            token=token,
            values={
                "status": DraftStatus.FAILED.value,
                "error": error,
                "next_attempt_at": None,
                "finished_at": db_now,
                "locked_by": None,
                "locked_at": None,
                "updated_at": db_now,
            },
        )

    def _update_claimed(self, *, token: ClaimToken, values: dict[str, Any]) -> bool:
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(DraftJob)
                .where(
                    col(DraftJob.draft_id) == token.draft_id,
                    col(DraftJob.status) == DraftStatus.PROCESSING.value,
                    col(DraftJob.locked_by) == token.worker_id,
                    col(DraftJob.locked_at) == to_db_datetime(token.locked_at),
                )
                .values(**values),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    # -- draft reads -----------------------------------------------------------

    def get_draft(self, *, draft_id: int) -> DraftJobView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(DraftJob).where(DraftJob.draft_id == draft_id),
            ).one_or_none()
            return _to_draft_view(row) if row is not None else None

    def list_drafts(
        self,
        *,
        status: DraftStatus | None = None,
        parent_job_id: int | None = None,
        limit: int = 50,
    ) -> list[DraftJobView]:
        """List recent drafts, optionally filtered by status and parent job."""

        with Session(self.engine) as session:
            statement = select(DraftJob)
            if status is not None:
                statement = statement.where(DraftJob.status == status.value)
            if parent_job_id is not None:
                statement = statement.where(DraftJob.parent_job_id == parent_job_id)
            rows = session.exec(
                statement.order_by(
                    col(DraftJob.created_at).desc(),
                    col(DraftJob.draft_id).desc(),
                ).limit(limit),
            ).all()
        return [_to_draft_view(row) for row in rows]

    # -- supporting records ----------------------------------------------------

    def get_parent_job(self, *, job_id: int) -> ParentJobView | None:
        with Session(self.engine) as session:
            row = session.exec(select(ParentJob).where(ParentJob.job_id == job_id)).one_or_none()
            return _to_parent_job_view(row) if row is not None else None

    def set_parent_job_status(self, *, job_id: int, status: str) -> bool:
        """Update the coarse status label shown on the parent job."""

        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(ParentJob)
                .where(col(ParentJob.job_id) == job_id)
                .values(status=status, updated_at=now),
            )
            session.commit()
            return result.rowcount == 1

    def get_user(self, *, user_id: str) -> UserView | None:
        with Session(self.engine) as session:
            row = session.exec(select(AppUser).where(AppUser.user_id == user_id)).one_or_none()
            return _to_user_view(row) if row is not None else None

    def find_active_template(self, *, trade_id: str, job_type_id: str) -> TemplateView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(ProposalTemplate)
                .where(
                    ProposalTemplate.trade_id == trade_id,
                    ProposalTemplate.job_type_id == job_type_id,
                    ProposalTemplate.is_active == True,  # noqa: E712
                )
                .order_by(col(ProposalTemplate.template_id).desc())
                .limit(1),
            ).one_or_none()
            return _to_template_view(row) if row is not None else None

    def list_photos(self, *, job_id: int) -> list[PhotoView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(JobPhoto)
                .where(JobPhoto.job_id == job_id)
                .order_by(col(JobPhoto.photo_id).asc()),
            ).all()
        return [_to_photo_view(row) for row in rows]

    def add_user(
        self,
        *,
        user_id: str,
        display_name: str,
        price_multiplier: int = 100,
        trade_multipliers: dict[str, Any] | None = None,
    ) -> UserView:
        with Session(self.engine) as session:
            row = AppUser(
                user_id=user_id,
                display_name=display_name,
                price_multiplier=price_multiplier,
                trade_multipliers=dict(trade_multipliers or {}),
                created_at=to_db_datetime(utc_now()),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_user_view(row)

    def add_template(self, payload: TemplateCreate) -> TemplateView:
        with Session(self.engine) as session:
            row = ProposalTemplate(
                trade_id=payload.trade_id,
                trade_name=payload.trade_name,
                job_type_id=payload.job_type_id,
                job_type_name=payload.job_type_name,
                base_scope=list(payload.base_scope),
                base_price_low=payload.base_price_low,
                base_price_high=payload.base_price_high,
                estimated_days_low=payload.estimated_days_low,
                estimated_days_high=payload.estimated_days_high,
                warranty=payload.warranty,
                exclusions=list(payload.exclusions) if payload.exclusions is not None else None,
                is_active=payload.is_active,
                created_at=to_db_datetime(utc_now()),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_template_view(row)

    def add_parent_job(self, payload: ParentJobCreate) -> ParentJobView:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            row = ParentJob(
                job_id=payload.job_id,
                user_id=payload.user_id,
                client_name=payload.client_name,
                address=payload.address,
                trade_id=payload.trade_id,
                trade_name=payload.trade_name,
                job_type_id=payload.job_type_id,
                job_type_name=payload.job_type_name,
                job_size=payload.job_size,
                job_notes=payload.job_notes,
                status="created",
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_parent_job_view(row)

    def add_photo(
        self,
        *,
        job_id: int,
        public_url: str,
        kind: str = "site",
        findings: dict[str, Any] | None = None,
        findings_status: str = "pending",
    ) -> PhotoView:
        with Session(self.engine) as session:
            row = JobPhoto(
                job_id=job_id,
                kind=kind,
                public_url=public_url,
                findings=findings,
                findings_status=findings_status,
                created_at=to_db_datetime(utc_now()),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_photo_view(row)


def _to_draft_view(row: DraftJob) -> DraftJobView:
    return DraftJobView(
        draft_id=row.draft_id or 0,
        parent_job_id=row.parent_job_id,
        idempotency_key=row.idempotency_key,
        status=DraftStatus(row.status),
        attempts=row.attempts,
        next_attempt_at=to_optional_utc(row.next_attempt_at),
        locked_by=row.locked_by,
        locked_at=to_optional_utc(row.locked_at),
        started_at=to_optional_utc(row.started_at),
        finished_at=to_optional_utc(row.finished_at),
        error=row.error,
        payload=row.payload,
        context=DraftContext.from_json(row.context),
        confidence=row.confidence,
        questions=list(row.questions or []),
        pricebook_version=row.pricebook_version,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_parent_job_view(row: ParentJob) -> ParentJobView:
    return ParentJobView(
        job_id=row.job_id or 0,
        user_id=row.user_id,
        client_name=row.client_name,
        address=row.address,
        trade_id=row.trade_id,
        trade_name=row.trade_name,
        job_type_id=row.job_type_id,
        job_type_name=row.job_type_name,
        job_size=row.job_size,
        job_notes=row.job_notes,
        status=row.status,
    )


def _to_user_view(row: AppUser) -> UserView:
    return UserView(
        user_id=row.user_id,
        display_name=row.display_name,
        price_multiplier=row.price_multiplier,
        trade_multipliers=dict(row.trade_multipliers or {}),
    )


def _to_template_view(row: ProposalTemplate) -> TemplateView:
    return TemplateView(
        template_id=row.template_id or 0,
        trade_id=row.trade_id,
        trade_name=row.trade_name,
        job_type_id=row.job_type_id,
        job_type_name=row.job_type_name,
        base_scope=list(row.base_scope or []),
        base_price_low=row.base_price_low,
        base_price_high=row.base_price_high,
        estimated_days_low=row.estimated_days_low,
        estimated_days_high=row.estimated_days_high,
        warranty=row.warranty,
        exclusions=list(row.exclusions or []),
    )


def _to_photo_view(row: JobPhoto) -> PhotoView:
    return PhotoView(
        photo_id=row.photo_id or 0,
        job_id=row.job_id,
        kind=row.kind,
        public_url=row.public_url,
        findings=row.findings,
        findings_status=row.findings_status,
    )
