"""SQLModel ORM tables for search result storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlmodel import Field, SQLModel


class SearchResultRow(SQLModel, table=True):
    __tablename__ = "search_results"  # type: ignore[bad-override]
    __table_args__ = (
        CheckConstraint("processed IN (0, 1, 2, 3)", name="ck_search_results_processed"),
        CheckConstraint("length(trim(search_query)) > 0", name="ck_search_results_query"),
        Index("idx_search_results_query", "search_query"),
        Index("idx_search_results_user", "user_id"),
        Index("idx_search_results_link_user", "link", "user_id"),
        Index("idx_search_results_search_date", "search_date"),
        Index("uq_search_results_user_domain", "user_id", "domain", unique=True),
    )

    id: int | None = Field(default=None, primary_key=True)
    search_query: str
    title: str | None = None
    link: str
    domain: str | None = None
    snippet: str | None = Field(default=None, sa_column=Column(Text))
    position: int | None = None
    serpapi_position: int | None = None
    user_id: str
    processed: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
    category: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
    search_date: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    errors: str | None = Field(default=None, sa_column=Column(Text))
    scan_details: str | None = Field(default=None, sa_column=Column(Text))
    contact_url: str | None = None
    is_wordpress: bool | None = Field(default=None, sa_column=Column(Boolean, nullable=True))


class SearchPaginationRow(SQLModel, table=True):
    __tablename__ = "search_pagination"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint(
            "search_query",
            "user_id",
            name="uq_search_pagination_query_user",
        ),
        Index("idx_search_pagination_query_user", "search_query", "user_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    search_query: str
    user_id: str
    last_start_position: int = 0
    total_requests_made: int = 0
    last_updated: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
