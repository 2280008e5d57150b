"""Enforce a single non-failed draft per parent job and idempotency key."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        sa.text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_draft_jobs_parent_idempotency_active
            ON draft_jobs (parent_job_id, idempotency_key)
            WHERE status != 'failed' AND idempotency_key IS NOT NULL
            """,
        ),
    )


def downgrade() -> None:
    op.execute(
        sa.text(
            "DROP INDEX IF EXISTS uq_draft_jobs_parent_idempotency_active",
        ),
    )
