"""Add scan outcome columns to search results."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("search_results", sa.Column("errors", sa.Text(), nullable=True))
    op.add_column("search_results", sa.Column("scan_details", sa.Text(), nullable=True))
    op.add_column(
        "search_results",
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    with op.batch_alter_table("search_results") as batch_op:
        batch_op.drop_column("updated_at")
        batch_op.drop_column("scan_details")
        batch_op.drop_column("errors")
