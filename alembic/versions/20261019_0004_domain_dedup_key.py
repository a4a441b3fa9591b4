"""Deduplicate stored links per user on the host, ignoring the scheme."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0004"
down_revision = "20261019_0003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("search_results", sa.Column("domain", sa.String(), nullable=True))
    # Stored links are already reduced to scheme://host[:port].
    op.execute(
        sa.text(
            """
            UPDATE search_results
            SET domain = lower(substr(link, instr(link, '://') + 3))
            WHERE instr(link, '://') > 0
            """,
        ),
    )
    op.execute(
        sa.text(
            """
            UPDATE search_results
            SET domain = lower(link)
            WHERE domain IS NULL
            """,
        ),
    )
    # Keep the oldest row per (user_id, domain), drop later scheme variants.
    op.execute(
        sa.text(
            """
            WITH ranked AS (
                SELECT
                    id,
                    ROW_NUMBER() OVER (
                        PARTITION BY user_id, domain
                        ORDER BY created_at ASC, id ASC
                    ) AS rn
                FROM search_results
            )
            DELETE FROM search_results
            WHERE id IN (SELECT id FROM ranked WHERE rn > 1)
            """,
        ),
    )
    op.execute(sa.text("DROP INDEX IF EXISTS uq_search_results_user_link"))
    op.execute(
        sa.text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_search_results_user_domain
            ON search_results (user_id, domain)
            """,
        ),
    )


def downgrade() -> None:
    op.execute(sa.text("DROP INDEX IF EXISTS uq_search_results_user_domain"))
    op.execute(
        sa.text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_search_results_user_link
            ON search_results (user_id, link)
            """,
        ),
    )
    with op.batch_alter_table("search_results") as batch_op:
        batch_op.drop_column("domain")
