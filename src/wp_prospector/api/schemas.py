"""API request/response schemas for FastAPI endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from wp_prospector.prospecting.models import (
    AnalyticsSummary,
    HistoryEntry,
    PaginationCursor,
    SearchResultView,
)


class SearchRequest(BaseModel):
    """Request schema for POST /api/search."""

    query: str | None = None
    resetPagination: bool = False


class DeleteSearchRequest(BaseModel):
    """Request schema for DELETE /api/search."""

    query: str | None = None


class StatusUpdateRequest(BaseModel):
    """Request schema for PATCH /api/search."""

    id: int | None = None
    processed: Any = None
    query: str | None = None


class ManualPageRequest(BaseModel):
    """Request schema for POST /api/pages."""

    link: str | None = None
    search_query: str | None = None
    title: str | None = None
    snippet: str | None = None
    category: int | None = None


class ScanCallbackRequest(BaseModel):
    """Payload posted by the scan service to POST /api/save."""

    model_config = ConfigDict(extra="allow")

    userId: str | None = None
    url: str | None = None
    status: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None
    resultId: int | None = None


class ClaimResolveRequest(BaseModel):
    """Request schema for POST /api/public/unprocessed."""

    id: int | None = None
    status: str = "completed"
    data: dict[str, Any] | None = None
    error: str | None = None


class SearchResultOut(BaseModel):
    """One stored search result."""

    id: int
    search_query: str
    title: str | None
    link: str
    snippet: str | None
    position: int | None
    serpapi_position: int | None
    user_id: str
    processed: int
    category: int
    search_date: datetime
    created_at: datetime
    updated_at: datetime | None = None
    errors: str | None = None
    scan_details: str | None = None
    contact_url: str | None = None
    is_wordpress: bool | None = None

    @classmethod
    def from_view(cls, view: SearchResultView) -> SearchResultOut:
        return cls(
            id=view.id,
            search_query=view.search_query,
            title=view.title,
            link=view.link,
            snippet=view.snippet,
            position=view.position,
            serpapi_position=view.serpapi_position,
            user_id=view.user_id,
            processed=int(view.processed),
            category=int(view.category),
            search_date=view.search_date,
            created_at=view.created_at,
            updated_at=view.updated_at,
            errors=view.errors,
            scan_details=view.scan_details,
            contact_url=view.contact_url,
            is_wordpress=view.is_wordpress,
        )


class CursorOut(BaseModel):
    """Pagination cursor for one query."""

    search_query: str
    user_id: str
    last_start_position: int
    total_requests_made: int
    last_updated: datetime

    @classmethod
    def from_cursor(cls, cursor: PaginationCursor) -> CursorOut:
        return cls(
            search_query=cursor.search_query,
            user_id=cursor.user_id,
            last_start_position=cursor.last_start_position,
            total_requests_made=cursor.total_requests_made,
            last_updated=cursor.last_updated,
        )


class HistoryEntryOut(BaseModel):
    search_query: str
    count: int
    last_search: datetime

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> HistoryEntryOut:
        return cls(
            search_query=entry.search_query,
            count=entry.count,
            last_search=entry.last_search,
        )


class SearchResponse(BaseModel):
    """Response schema for POST /api/search."""

    success: bool = True
    query: str
    totalResults: int
    requestsMade: int
    totalRequestsMadeOverall: int
    nextStartPosition: int
    failedPages: int = 0
    results: list[SearchResultOut] = Field(default_factory=list)


class QueryResultsResponse(BaseModel):
    results: list[SearchResultOut]
    query: str
    pagination: CursorOut | None = None


class HistoryResponse(BaseModel):
    history: list[HistoryEntryOut]
    totalCount: int


class PaginationStatesResponse(BaseModel):
    paginationStates: list[CursorOut]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ManualPageResponse(BaseModel):
    success: bool = True
    message: str = "Page added successfully"
    result: SearchResultOut


class ResultResponse(BaseModel):
    result: SearchResultOut


class ScanCallbackResponse(BaseModel):
    message: str = "Scan result processed successfully"
    resultId: int
    status: str
    scan_details_stored: bool
    timestamp: datetime


class MetadataUpdateResponse(BaseModel):
    """Response schema for POST /api/update-metadata."""

    success: bool = True
    message: str
    updated: int
    total_requested: int
    errors: list[str] | None = None


class ClaimResponse(BaseModel):
    success: bool = True
    result: SearchResultOut


class CountBucketOut(BaseModel):
    key: int | str
    count: int


class AnalyticsResponse(BaseModel):
    """Response schema for GET /api/analytics."""

    totalResults: int
    totalQueries: int
    totalRequests: int
    avgRequestsPerQuery: float
    resultsWithErrors: int
    processedStats: list[CountBucketOut]
    categoryStats: list[CountBucketOut]
    searchActivity: list[CountBucketOut]
    topQueries: list[HistoryEntryOut]

    @classmethod
    def from_summary(cls, summary: AnalyticsSummary) -> AnalyticsResponse:
        return cls(
            totalResults=summary.total_results,
            totalQueries=summary.total_queries,
            totalRequests=summary.total_requests,
            avgRequestsPerQuery=summary.avg_requests_per_query,
            resultsWithErrors=summary.results_with_errors,
            processedStats=[
                CountBucketOut(key=bucket.key, count=bucket.count)
                for bucket in summary.processed_stats
            ],
            categoryStats=[
                CountBucketOut(key=bucket.key, count=bucket.count)
                for bucket in summary.category_stats
            ],
            searchActivity=[
                CountBucketOut(key=bucket.key, count=bucket.count)
                for bucket in summary.search_activity
            ],
            topQueries=[HistoryEntryOut.from_entry(entry) for entry in summary.top_queries],
        )


class HealthResponse(BaseModel):
    """Response schema for GET /health."""

    status: str = Field(default="ok")
    version: str
