"""Initial draft queue schema: users, templates, parent jobs, photos, draft jobs."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("price_multiplier", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("trade_multipliers", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index("ix_users_user_id", "users", ["user_id"])
    op.create_index("ix_users_display_name", "users", ["display_name"])

    op.create_table(
        "proposal_templates",
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("trade_id", sa.String(), nullable=False),
        sa.Column("trade_name", sa.String(), nullable=False),
        sa.Column("job_type_id", sa.String(), nullable=False),
        sa.Column("job_type_name", sa.String(), nullable=False),
        sa.Column("base_scope", sa.JSON(), nullable=False),
        sa.Column("base_price_low", sa.Integer(), nullable=False),
        sa.Column("base_price_high", sa.Integer(), nullable=False),
        sa.Column("estimated_days_low", sa.Integer(), nullable=True),
        sa.Column("estimated_days_high", sa.Integer(), nullable=True),
        sa.Column("warranty", sa.Text(), nullable=True),
        sa.Column("exclusions", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("template_id"),
    )
    op.create_index(
        "idx_proposal_templates_trade_job",
        "proposal_templates",
        ["trade_id", "job_type_id"],
    )

    op.create_table(
        "parent_jobs",
        sa.Column("job_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("trade_id", sa.String(), nullable=False),
        sa.Column("trade_name", sa.String(), nullable=True),
        sa.Column("job_type_id", sa.String(), nullable=False),
        sa.Column("job_type_name", sa.String(), nullable=False),
        sa.Column("job_size", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("job_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="created"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index("ix_parent_jobs_user_id", "parent_jobs", ["user_id"])
    op.create_index("ix_parent_jobs_status", "parent_jobs", ["status"])

    op.create_table(
        "job_photos",
        sa.Column("photo_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False, server_default="site"),
        sa.Column("public_url", sa.Text(), nullable=False),
        sa.Column("findings", sa.JSON(), nullable=True),
        sa.Column("findings_status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["job_id"], ["parent_jobs.job_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("photo_id"),
    )
    op.create_index("ix_job_photos_job_id", "job_photos", ["job_id"])

    op.create_table(
        "draft_jobs",
        sa.Column("draft_id", sa.Integer(), nullable=False),
        sa.Column("parent_job_id", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_by", sa.String(), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("confidence", sa.Integer(), nullable=True),
        sa.Column("questions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("pricebook_version", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("draft_id"),
    )
    op.create_index("ix_draft_jobs_parent_job_id", "draft_jobs", ["parent_job_id"])
    op.create_index("ix_draft_jobs_status", "draft_jobs", ["status"])
    op.create_index(
        "idx_draft_jobs_status_next_attempt",
        "draft_jobs",
        ["status", "next_attempt_at"],
    )
    op.create_index(
        "idx_draft_jobs_parent_idempotency",
        "draft_jobs",
        ["parent_job_id", "idempotency_key"],
    )


def downgrade() -> None:
    op.drop_index("idx_draft_jobs_parent_idempotency", table_name="draft_jobs")
    op.drop_index("idx_draft_jobs_status_next_attempt", table_name="draft_jobs")
    op.drop_index("ix_draft_jobs_status", table_name="draft_jobs")
    op.drop_index("ix_draft_jobs_parent_job_id", table_name="draft_jobs")
    op.drop_index("ix_job_photos_job_id", table_name="job_photos")
    op.drop_index("ix_parent_jobs_status", table_name="parent_jobs")
    op.drop_index("ix_parent_jobs_user_id", table_name="parent_jobs")
    op.drop_index("idx_proposal_templates_trade_job", table_name="proposal_templates")
    op.drop_index("ix_users_display_name", table_name="users")
    op.drop_index("ix_users_user_id", table_name="users")
    op.drop_table("draft_jobs")
    op.drop_table("job_photos")
    op.drop_table("parent_jobs")
    op.drop_table("proposal_templates")
    op.drop_table("users")
