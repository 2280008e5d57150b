"""SQLModel ORM tables for draft queue storage."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Text, text
from sqlmodel import Field, SQLModel


class AppUser(SQLModel, table=True):
    __tablename__ = "users"  # type: ignore[bad-override]

    user_id: str = Field(primary_key=True, index=True)
    display_name: str = Field(index=True)
    price_multiplier: int = Field(default=100)
    trade_multipliers: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, server_default="{}"),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ProposalTemplate(SQLModel, table=True):
    __tablename__ = "proposal_templates"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_proposal_templates_trade_job", "trade_id", "job_type_id"),)

    template_id: int | None = Field(default=None, primary_key=True)
    trade_id: str
    trade_name: str
    job_type_id: str
    job_type_name: str
    base_scope: list[Any] = Field(sa_column=Column(JSON, nullable=False))
    base_price_low: int
    base_price_high: int
    estimated_days_low: int | None = None
    estimated_days_high: int | None = None
    warranty: str | None = Field(default=None, sa_column=Column(Text))
    exclusions: list[str] | None = Field(default=None, sa_column=Column(JSON))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ParentJob(SQLModel, table=True):
    __tablename__ = "parent_jobs"  # type: ignore[bad-override]

    job_id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    client_name: str
    address: str = Field(sa_column=Column(Text, nullable=False))
    trade_id: str
    trade_name: str | None = None
    job_type_id: str
    job_type_name: str
    job_size: int = Field(default=2)
    job_notes: str | None = Field(default=None, sa_column=Column(Text))
    status: str = Field(default="created", index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class JobPhoto(SQLModel, table=True):
    __tablename__ = "job_photos"  # type: ignore[bad-override]

    photo_id: int | None = Field(default=None, primary_key=True)
    job_id: int = Field(
        sa_column=Column(
            ForeignKey("parent_jobs.job_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    kind: str = Field(default="site")
    public_url: str = Field(sa_column=Column(Text, nullable=False))
    findings: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    findings_status: str = Field(default="pending")
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class DraftJob(SQLModel, table=True):
    __tablename__ = "draft_jobs"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_draft_jobs_status_next_attempt", "status", "next_attempt_at"),
        Index("idx_draft_jobs_parent_idempotency", "parent_job_id", "idempotency_key"),
        Index(
            "uq_draft_jobs_parent_idempotency_active",
            "parent_job_id",
            "idempotency_key",
            unique=True,
            sqlite_where=text("status != 'failed' AND idempotency_key IS NOT NULL"),
        ),
    )

    draft_id: int | None = Field(default=None, primary_key=True)
    parent_job_id: int = Field(index=True)
    idempotency_key: str | None = None
    status: str = Field(index=True)
    attempts: int = Field(default=0)
    next_attempt_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True)),
    )
    locked_by: str | None = None
    locked_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    finished_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    error: str | None = Field(default=None, sa_column=Column(Text))
    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    context: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    confidence: int | None = None
    questions: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, server_default="[]"),
    )
    pricebook_version: str | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
