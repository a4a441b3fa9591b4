"""Enforce one stored link per user."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Keep the oldest row per (user_id, link), drop later duplicates.
    op.execute(
        sa.text(
            """
            WITH ranked AS (
                SELECT
                    id,
                    ROW_NUMBER() OVER (
                        PARTITION BY user_id, link
                        ORDER BY created_at ASC, id ASC
                    ) AS rn
                FROM search_results
            )
            DELETE FROM search_results
            WHERE id IN (SELECT id FROM ranked WHERE rn > 1)
            """,
        ),
    )
    op.execute(
        sa.text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_search_results_user_link
            ON search_results (user_id, link)
            """,
        ),
    )


def downgrade() -> None:
    op.execute(
        sa.text(
            "DROP INDEX IF EXISTS uq_search_results_user_link",
        ),
    )
