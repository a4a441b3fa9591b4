"""Manual page intake through the same duplicate gate as search cycles."""

from __future__ import annotations

import logging

from wp_prospector.prospecting.errors import (
    DuplicateLinkError,
    InputValidationError,
    StoreError,
)
from wp_prospector.prospecting.links import is_valid_url, normalize_link
from wp_prospector.prospecting.models import (
    NewSearchResult,
    ProcessingState,
    ResultCategory,
    SearchResultView,
)
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.services.dedup_service import DeduplicationGate

logger = logging.getLogger(__name__)


class ManualIntakeService:
    """Adds user-supplied pages to the store."""

    def __init__(self, *, repository: SQLiteRepository) -> None:
        self.repository = repository

    def add_page(
        self,
        *,
        link: str,
        search_query: str,
        user_id: str,
        title: str | None = None,
        snippet: str | None = None,
        category: int | None = None,
    ) -> SearchResultView:
        query = (search_query or "").strip()
        if not link or not query:
            raise InputValidationError("Link and search query are required")
        if not is_valid_url(link):
            raise InputValidationError("Invalid URL format")
        normalized = normalize_link(link)
        if normalized is None:
            raise InputValidationError("Invalid URL format")

        resolved_category = _parse_category(category)
        gate = DeduplicationGate(repository=self.repository)
        if not gate.admit(normalized, user_id):
            raise DuplicateLinkError("This page already exists in your database")

        result_id = self.repository.insert_one(
            NewSearchResult(
                search_query=query,
                link=normalized,
                user_id=user_id,
                title=(title or "").strip() or None,
                snippet=(snippet or "").strip() or None,
                processed=ProcessingState.UNPROCESSED,
                category=resolved_category,
            ),
        )
        inserted = self.repository.find_by_id(result_id, user_id=user_id)
        if inserted is None:
            raise StoreError(f"Inserted result {result_id} could not be read back")
        logger.info("Manually added %s under query %r.", normalized, query)
        return inserted


def _parse_category(value: int | None) -> ResultCategory:
    if value is None:
        return ResultCategory.MANUAL
    try:
        return ResultCategory(value)
    except ValueError as error:
        allowed = ", ".join(str(int(item)) for item in ResultCategory)
        raise InputValidationError(f"category must be one of {allowed} (got {value!r})") from error
