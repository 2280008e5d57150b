from pathlib import Path

import allure

from proposal_drafts.drafts.repository import DraftRepository
from proposal_drafts.storage.common import connect_sqlite_with_policy

pytestmark = [
    allure.epic("Draft Queue"),
    allure.feature("Persistence"),
]


def test_alembic_schema_is_initialized_to_head(tmp_path: Path) -> None:
    db_path = tmp_path / "migrations.db"
    repository = DraftRepository(db_path)
    repository.init_schema()
    repository.init_schema()
    repository.close()

    connection = connect_sqlite_with_policy(db_path=db_path, busy_timeout_ms=1_000)
    try:
        row = connection.execute("SELECT version_num FROM alembic_version LIMIT 1").fetchone()
        assert row is not None
        assert str(row["version_num"]) == "20261018_0002"

        tables = connection.execute(
            """
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
              AND name IN ('users', 'proposal_templates', 'parent_jobs', 'job_photos',
                           'draft_jobs')
            ORDER BY name
            """
        ).fetchall()
        assert [str(row["name"]) for row in tables] == [
            "draft_jobs",
            "job_photos",
            "parent_jobs",
            "proposal_templates",
            "users",
        ]

        index = connection.execute(
            """
            SELECT sql
            FROM sqlite_master
            WHERE type = 'index' AND name = 'uq_draft_jobs_parent_idempotency_active'
            """
        ).fetchone()
        assert index is not None
        assert "status != 'failed'" in str(index["sql"])

        journal_mode = connection.execute("PRAGMA journal_mode").fetchone()
        assert str(journal_mode[0]).lower() == "wal"
    finally:
        connection.close()
