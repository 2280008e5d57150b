"""Domain models for the draft job queue."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class DraftStatus(str, Enum):
    """Durable draft lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({DraftStatus.READY, DraftStatus.FAILED})

PARENT_STATUS_DRAFTING = "drafting"
PARENT_STATUS_DRAFTED = "drafted"


@dataclass(slots=True, frozen=True)
class SelectedIssue:
    """Issue the requester picked for the proposal to address."""

    id: str
    label: str
    category: str = ""


@dataclass(slots=True)
class DraftContext:
    """Requester-supplied context carried on the draft record until generation."""

    selected_issues: list[SelectedIssue] = field(default_factory=list)
    problem_statement: str | None = None

    def to_json(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_json(cls, raw: dict[str, Any] | None) -> DraftContext:
        if not raw:
            return cls()
        issues = [
            SelectedIssue(
                id=str(item.get("id", "")),
                label=str(item.get("label", "")),
                category=str(item.get("category", "")),
            )
            for item in raw.get("selected_issues") or []
            if isinstance(item, dict)
        ]
        statement = raw.get("problem_statement")
        return cls(
            selected_issues=issues,
            problem_statement=str(statement) if statement else None,
        )

    def notes_suffix(self) -> str:
        """Render context as a notes addendum for the generator."""

        parts: list[str] = []
        if self.problem_statement:
            parts.append(f"Problem statement: {self.problem_statement.strip()}")
        labels = [issue.label for issue in self.selected_issues if issue.label]
        if labels:
            parts.append(f"Selected issues to address: {'; '.join(labels)}")
        return "\n\n".join(parts)


@dataclass(slots=True)
class DraftJobView:
    """Readable draft job view for worker logic and CLI."""

    draft_id: int
    parent_job_id: int
    idempotency_key: str | None
    status: DraftStatus
    attempts: int
    next_attempt_at: datetime | None
    locked_by: str | None
    locked_at: datetime | None
    started_at: datetime | None
    finished_at: datetime | None
    error: str | None
    payload: dict[str, Any] | None
    context: DraftContext
    confidence: int | None
    questions: list[str]
    pricebook_version: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True, frozen=True)
class ClaimToken:
    """Lock values captured at claim time; terminal writes must still match them."""

    draft_id: int
    worker_id: str
    locked_at: datetime


@dataclass(slots=True)
class ParentJobView:
    job_id: int
    user_id: str
    client_name: str
    address: str
    trade_id: str
    trade_name: str | None
    job_type_id: str
    job_type_name: str
    job_size: int
    job_notes: str | None
    status: str


@dataclass(slots=True)
class UserView:
    user_id: str
    display_name: str
    price_multiplier: int
    trade_multipliers: dict[str, Any]


@dataclass(slots=True)
class TemplateView:
    template_id: int
    trade_id: str
    trade_name: str
    job_type_id: str
    job_type_name: str
    base_scope: list[Any]
    base_price_low: int
    base_price_high: int
    estimated_days_low: int | None
    estimated_days_high: int | None
    warranty: str | None
    exclusions: list[str]


@dataclass(slots=True)
class PhotoView:
    photo_id: int
    job_id: int
    kind: str
    public_url: str
    findings: dict[str, Any] | None
    findings_status: str


@dataclass(slots=True)
class ParentJobCreate:
    """Input for inserting a parent job record (seeding and tests)."""

    user_id: str
    client_name: str
    address: str
    trade_id: str
    job_type_id: str
    job_type_name: str
    trade_name: str | None = None
    job_size: int = 2
    job_notes: str | None = None
    job_id: int | None = None


@dataclass(slots=True)
class TemplateCreate:
    """Input for inserting a proposal template (seeding and tests)."""

    trade_id: str
    trade_name: str
    job_type_id: str
    job_type_name: str
    base_scope: list[Any]
    base_price_low: int
    base_price_high: int
    estimated_days_low: int | None = None
    estimated_days_high: int | None = None
    warranty: str | None = None
    exclusions: list[str] | None = None
    is_active: bool = True
