"""Add contact page and WordPress detection columns to search results."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0005"
down_revision = "20261019_0004"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("search_results", sa.Column("contact_url", sa.String(), nullable=True))
    op.add_column("search_results", sa.Column("is_wordpress", sa.Boolean(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("search_results") as batch_op:
        batch_op.drop_column("is_wordpress")
        batch_op.drop_column("contact_url")
