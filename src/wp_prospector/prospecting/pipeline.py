"""Search orchestration cycle: fetch, dedup, persist, advance cursor."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from wp_prospector.config import SearchSettings
from wp_prospector.prospecting.errors import InputValidationError, SearchProviderError
from wp_prospector.prospecting.links import normalize_link
from wp_prospector.prospecting.models import (
    NewSearchResult,
    ProcessingState,
    ResultCategory,
    SearchCycleRequest,
    SearchCycleSummary,
)
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.services.cursor_service import PaginationCursorManager
from wp_prospector.prospecting.services.dedup_service import DeduplicationGate
from wp_prospector.prospecting.sources.base import SearchProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _KeyedLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


@dataclass(slots=True)
class KeyedLocks:
    """Process-wide mutex per (query, user) key.

    Entries are reference-counted and dropped once the last holder or waiter
    releases, so the registry only holds keys with a cycle in flight.
    """

    _guard: threading.Lock = field(default_factory=threading.Lock)
    _locks: dict[tuple[str, str], _KeyedLock] = field(default_factory=dict)

    @contextmanager
    def hold(self, query: str, user_id: str) -> Iterator[None]:
        key = (query, user_id)
        with self._guard:
            entry = self._locks.setdefault(key, _KeyedLock())
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


CYCLE_LOCKS = KeyedLocks()


@dataclass(slots=True)
class _PageTally:
    pages_fetched: int = 0
    failed_pages: int = 0
    skipped_duplicates: int = 0
    provider_error: str | None = None
    staged: list[NewSearchResult] = field(default_factory=list)


class SearchOrchestrator:
    """Runs one bounded search cycle against the provider for a query/user pair."""

    def __init__(
        self,
        *,
        search_settings: SearchSettings,
        repository: SQLiteRepository,
        provider: SearchProvider,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.search_settings = search_settings
        self.repository = repository
        self.provider = provider
        self.locks = locks if locks is not None else CYCLE_LOCKS
        self.cursors = PaginationCursorManager(repository=repository)

    def run_cycle(self, request: SearchCycleRequest) -> SearchCycleSummary:
        query = request.query.strip()
        if not query:
            raise InputValidationError("Query is required")
        if not request.user_id:
            raise InputValidationError("User id is required")

        with self.locks.hold(query, request.user_id):
            return self._run_locked(query=query, request=request)

    def _run_locked(self, *, query: str, request: SearchCycleRequest) -> SearchCycleSummary:
        if request.reset_pagination:
            self.cursors.reset(query, request.user_id)

        start_offset = self.cursors.start_offset(query, request.user_id)
        logger.info(
            "Starting search cycle for query %r at offset %d (max pages %d).",
            query,
            start_offset,
            self.search_settings.max_pages_per_cycle,
        )
        tally = self._fetch_pages(query=query, user_id=request.user_id, start_offset=start_offset)

        inserted_ids = self.repository.insert_many(tally.staged)

        cursor = self.cursors.get(query, request.user_id)
        if tally.pages_fetched:
            cursor = self.cursors.advance(
                query,
                request.user_id,
                new_start_position=start_offset
                + tally.pages_fetched * self.search_settings.page_size,
                requests_made_increment=tally.pages_fetched,
            )

        results = self.repository.find_by_ids(inserted_ids, user_id=request.user_id)
        logger.info(
            "Search cycle for query %r done: inserted=%d duplicates=%d pages=%d failed_pages=%d.",
            query,
            len(results),
            tally.skipped_duplicates,
            tally.pages_fetched,
            tally.failed_pages,
        )
        return SearchCycleSummary(
            query=query,
            results=results,
            requests_made=tally.pages_fetched,
            total_requests_made_overall=cursor.total_requests_made if cursor else 0,
            next_start_position=cursor.last_start_position if cursor else start_offset,
            skipped_duplicates=tally.skipped_duplicates,
            failed_pages=tally.failed_pages,
            provider_error=tally.provider_error,
        )

    def _fetch_pages(self, *, query: str, user_id: str, start_offset: int) -> _PageTally:
        page_size = self.search_settings.page_size
        gate = DeduplicationGate(repository=self.repository)
        tally = _PageTally()

        for page_index in range(self.search_settings.max_pages_per_cycle):
            offset = start_offset + page_index * page_size
            try:
                page = self.provider.fetch_page(query, start_offset=offset, page_size=page_size)
            except SearchProviderError as error:
                # Later pages would leave a hole in the cursor range.
                logger.warning(
                    "Provider %s failed for query %r at offset %d: %s",
                    self.provider.name,
                    query,
                    offset,
                    error,
                )
                tally.failed_pages += 1
                tally.provider_error = str(error)
                break

            tally.pages_fetched += 1
            for index, organic in enumerate(page.results):
                link = normalize_link(organic.link)
                if link is None:
                    logger.debug("Skipping organic result without usable link: %r", organic.link)
                    continue
                if not gate.admit(link, user_id):
                    tally.skipped_duplicates += 1
                    continue
                rank = offset + index + 1
                tally.staged.append(
                    NewSearchResult(
                        search_query=query,
                        link=link,
                        user_id=user_id,
                        title=organic.title,
                        snippet=organic.snippet,
                        position=rank,
                        serpapi_position=rank,
                        processed=ProcessingState.UNPROCESSED,
                        category=ResultCategory.AUTO_DISCOVERED,
                    ),
                )

            if len(page.results) < page_size:
                logger.info("Reached end of results for query %r at offset %d.", query, offset)
                break

        return tally


def run_search_cycle(
    *,
    search_settings: SearchSettings,
    repository: SQLiteRepository,
    provider: SearchProvider,
    request: SearchCycleRequest,
) -> SearchCycleSummary:
    """Run one search cycle with provided dependencies."""

    return SearchOrchestrator(
        search_settings=search_settings,
        repository=repository,
        provider=provider,
    ).run_cycle(request)
