"""Controllers for prospecting CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from wp_prospector.config import Settings
from wp_prospector.prospecting.errors import SearchProviderError
from wp_prospector.prospecting.models import ProcessingState, SearchCycleRequest
from wp_prospector.prospecting.pipeline import run_search_cycle
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.services.cursor_service import PaginationCursorManager
from wp_prospector.prospecting.sources.serpapi import SerpApiConfig, SerpApiProvider


@dataclass(slots=True)
class SearchRunCommand:
    """CLI inputs for one search cycle."""

    db_path: Path | None
    query: str
    user_id: str
    reset_pagination: bool


@dataclass(slots=True)
class SearchHistoryCommand:
    """CLI inputs for query history listing."""

    db_path: Path | None
    user_id: str


@dataclass(slots=True)
class SearchResultsCommand:
    """CLI inputs for listing stored results of one query."""

    db_path: Path | None
    query: str
    user_id: str


@dataclass(slots=True)
class SearchDeleteCommand:
    """CLI inputs for deleting one query with its cursor."""

    db_path: Path | None
    query: str
    user_id: str


class ProspectingCliController:
    """Coordinates prospecting command execution."""

    def upgrade_db(self, db_path: Path | None) -> list[str]:
        settings = Settings.from_env(db_path=db_path)
        with open_repository(settings):
            pass
        return [f"Schema is at head: {settings.db_path}"]

    def run_search(self, command: SearchRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_search()
        with open_repository(settings) as repository, build_search_provider(settings) as provider:
            summary = run_search_cycle(
                search_settings=settings.search,
                repository=repository,
                provider=provider,
                request=SearchCycleRequest(
                    query=command.query,
                    user_id=command.user_id,
                    reset_pagination=command.reset_pagination,
                ),
            )
        if summary.all_pages_failed:
            raise SearchProviderError(
                f"Search provider request failed: {summary.provider_error}",
            )

        lines = [
            "Search cycle completed: "
            f"query={summary.query!r} "
            f"inserted={len(summary.results)} "
            f"duplicates={summary.skipped_duplicates} "
            f"requests={summary.requests_made} "
            f"failed_pages={summary.failed_pages} "
            f"total_requests={summary.total_requests_made_overall} "
            f"next_start={summary.next_start_position}",
        ]
        lines.extend(
            f"  #{result.id} {result.link} {result.title or ''}" for result in summary.results
        )
        return lines

    def history(self, command: SearchHistoryCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_repository(settings) as repository:
            history = repository.search_history(command.user_id)
            total = repository.count(command.user_id)
            cursors = {
                cursor.search_query: cursor
                for cursor in PaginationCursorManager(repository=repository).list_for_user(
                    command.user_id,
                )
            }

        lines = [f"Stored results: {total} across {len(history)} queries"]
        for entry in history:
            cursor = cursors.get(entry.search_query)
            paging = (
                f"next_start={cursor.last_start_position} requests={cursor.total_requests_made}"
                if cursor is not None
                else "next_start=0 requests=0"
            )
            lines.append(
                f"  {entry.search_query!r} results={entry.count} "
                f"last_search={entry.last_search.isoformat()} {paging}",
            )
        return lines

    def results(self, command: SearchResultsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_repository(settings) as repository:
            results = repository.find_by_query(command.query, command.user_id)

        if not results:
            return [f"No stored results for query {command.query!r}"]
        lines = [f"Results for query {command.query!r}: {len(results)}"]
        lines.extend(
            f"  #{result.id} pos={result.position if result.position is not None else '-'} "
            f"status={ProcessingState(result.processed).name.lower()} "
            f"category={result.category.name.lower()} {result.link}"
            for result in results
        )
        return lines

    def delete(self, command: SearchDeleteCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_repository(settings) as repository:
            deleted = repository.delete_query_with_cursor(command.query, command.user_id)
        return [f"Deleted {deleted} results and pagination state for query {command.query!r}"]


@contextmanager
def open_repository(settings: Settings) -> Iterator[SQLiteRepository]:
    repository = SQLiteRepository(
        settings.db_path,
        busy_timeout_ms=settings.storage.busy_timeout_ms,
    )
    try:
        repository.init_schema()
        yield repository
    finally:
        repository.close()


def build_search_provider(settings: Settings) -> SerpApiProvider:
    return SerpApiProvider(
        SerpApiConfig(
            api_key=settings.search.serpapi_key,
            query_suffix=settings.search.query_suffix,
            location=settings.search.location or None,
            language=settings.search.language,
            country=settings.search.country,
            timeout_seconds=settings.search.timeout_seconds,
        ),
    )
