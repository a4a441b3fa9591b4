"""Domain models for search results, pagination cursors, and scan outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum


class ProcessingState(IntEnum):
    """Lifecycle states for one stored search result."""

    UNPROCESSED = 0
    IN_PROGRESS = 1
    COMPLETED = 2
    ERROR = 3


class ResultCategory(IntEnum):
    """Origin tag for one stored search result."""

    AUTO_DISCOVERED = 0
    REVIEWED = 1
    MANUAL = 2


class ScanOutcome(str, Enum):
    """Terminal outcomes reported for a scan."""

    COMPLETED = "completed"
    ERROR = "error"


# Moves driven by scan dispatch, callbacks and the claim queue. Manual status
# edits from the dashboard bypass this table and may set any state directly.
ALLOWED_TRANSITIONS: dict[ProcessingState, frozenset[ProcessingState]] = {
    ProcessingState.UNPROCESSED: frozenset({ProcessingState.IN_PROGRESS}),
    ProcessingState.IN_PROGRESS: frozenset({ProcessingState.COMPLETED, ProcessingState.ERROR}),
    ProcessingState.COMPLETED: frozenset(),
    ProcessingState.ERROR: frozenset({ProcessingState.IN_PROGRESS}),
}


@dataclass(slots=True)
class NewSearchResult:
    """Search result staged for insertion."""

    search_query: str
    link: str
    user_id: str
    title: str | None = None
    snippet: str | None = None
    position: int | None = None
    serpapi_position: int | None = None
    processed: ProcessingState = ProcessingState.UNPROCESSED
    category: ResultCategory = ResultCategory.AUTO_DISCOVERED


@dataclass(slots=True)
class SearchResultView:
    """Stored search result as read back from the repository."""

    id: int
    search_query: str
    link: str
    user_id: str
    title: str | None
    snippet: str | None
    position: int | None
    serpapi_position: int | None
    processed: ProcessingState
    category: ResultCategory
    search_date: datetime
    created_at: datetime
    updated_at: datetime | None = None
    errors: str | None = None
    scan_details: str | None = None
    contact_url: str | None = None
    is_wordpress: bool | None = None


@dataclass(slots=True)
class MetadataUpdate:
    """Site metadata gathered outside the scan flow for one stored result."""

    result_id: int
    contact_url: str
    category: ResultCategory
    is_wordpress: bool


@dataclass(slots=True)
class MetadataUpdateReport:
    updated: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PaginationCursor:
    """How far a paginated provider search has progressed for one query/user."""

    search_query: str
    user_id: str
    last_start_position: int
    total_requests_made: int
    last_updated: datetime


@dataclass(slots=True)
class HistoryEntry:
    """Per-query aggregate of stored results."""

    search_query: str
    count: int
    last_search: datetime


@dataclass(slots=True)
class OrganicResult:
    """One organic hit returned by the search provider."""

    link: str
    title: str | None = None
    snippet: str | None = None


@dataclass(slots=True)
class ProviderPage:
    """One page of organic results requested at a given offset."""

    start_offset: int
    results: list[OrganicResult]


@dataclass(slots=True)
class SearchCycleRequest:
    """Inputs for one orchestration cycle."""

    query: str
    user_id: str
    reset_pagination: bool = False


@dataclass(slots=True)
class SearchCycleSummary:
    """Result of one orchestration cycle."""

    query: str
    results: list[SearchResultView]
    requests_made: int
    total_requests_made_overall: int
    next_start_position: int
    skipped_duplicates: int = 0
    failed_pages: int = 0
    provider_error: str | None = None

    @property
    def all_pages_failed(self) -> bool:
        return self.requests_made == 0 and self.failed_pages > 0


@dataclass(slots=True)
class ScanCallback:
    """Scan result reported back by the external scan service."""

    user_id: str
    url: str
    status: str
    data: dict[str, object] | None = None
    error: str | None = None
    result_id: int | None = None


@dataclass(slots=True)
class ScanResolution:
    """What a scan callback did to the matched row."""

    result_id: int
    status: ProcessingState
    scan_details_stored: bool


@dataclass(slots=True)
class CountBucket:
    """Count grouped by one key."""

    key: int | str
    count: int


@dataclass(slots=True)
class AnalyticsSummary:
    """Per-user aggregate statistics over stored results and cursors."""

    total_results: int = 0
    total_queries: int = 0
    total_requests: int = 0
    avg_requests_per_query: float = 0.0
    results_with_errors: int = 0
    processed_stats: list[CountBucket] = field(default_factory=list)
    category_stats: list[CountBucket] = field(default_factory=list)
    search_activity: list[CountBucket] = field(default_factory=list)
    top_queries: list[HistoryEntry] = field(default_factory=list)
