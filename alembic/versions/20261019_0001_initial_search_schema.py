"""Initial search results and pagination cursor schema."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "search_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("search_query", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("link", sa.String(), nullable=False),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("serpapi_position", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("search_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("processed IN (0, 1, 2, 3)", name="ck_search_results_processed"),
        sa.CheckConstraint("length(trim(search_query)) > 0", name="ck_search_results_query"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "search_pagination",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("search_query", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("last_start_position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_requests_made", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "search_query",
            "user_id",
            name="uq_search_pagination_query_user",
        ),
    )

    op.create_index("idx_search_results_query", "search_results", ["search_query"])
    op.create_index("idx_search_results_user", "search_results", ["user_id"])
    op.create_index("idx_search_results_link_user", "search_results", ["link", "user_id"])
    op.create_index("idx_search_results_search_date", "search_results", ["search_date"])
    op.create_index(
        "idx_search_pagination_query_user",
        "search_pagination",
        ["search_query", "user_id"],
    )


def downgrade() -> None:
    op.drop_index("idx_search_pagination_query_user", table_name="search_pagination")
    op.drop_index("idx_search_results_search_date", table_name="search_results")
    op.drop_index("idx_search_results_link_user", table_name="search_results")
    op.drop_index("idx_search_results_user", table_name="search_results")
    op.drop_index("idx_search_results_query", table_name="search_results")
    op.drop_table("search_pagination")
    op.drop_table("search_results")
