"""Pagination cursor management for resumable provider searches."""

from __future__ import annotations

import logging

from wp_prospector.prospecting.models import PaginationCursor
from wp_prospector.prospecting.repository import SQLiteRepository

logger = logging.getLogger(__name__)


class PaginationCursorManager:
    """Tracks how far each (query, user) search has paged through the provider."""

    def __init__(self, *, repository: SQLiteRepository) -> None:
        self.repository = repository

    def get(self, query: str, user_id: str) -> PaginationCursor | None:
        return self.repository.get_cursor(query, user_id)

    def start_offset(self, query: str, user_id: str) -> int:
        """Next provider offset to request; 0 when no cursor exists."""

        cursor = self.get(query, user_id)
        if cursor is None:
            return 0
        return cursor.last_start_position

    def advance(
        self,
        query: str,
        user_id: str,
        *,
        new_start_position: int,
        requests_made_increment: int,
    ) -> PaginationCursor:
        if requests_made_increment < 0:
            raise ValueError("requests_made_increment must be >= 0")
        current = self.get(query, user_id)
        previous_total = current.total_requests_made if current is not None else 0
        if current is not None and new_start_position < current.last_start_position:
            raise ValueError(
                "Cursor cannot move backwards "
                f"({current.last_start_position} -> {new_start_position}); use reset instead.",
            )
        cursor = self.repository.upsert_cursor(
            query,
            user_id,
            last_start_position=new_start_position,
            total_requests_made=previous_total + requests_made_increment,
        )
        logger.debug(
            "Advanced cursor for query %r: next_start=%d total_requests=%d.",
            query,
            cursor.last_start_position,
            cursor.total_requests_made,
        )
        return cursor

    def reset(self, query: str, user_id: str) -> None:
        if self.repository.delete_cursor(query, user_id):
            logger.info("Reset pagination cursor for query %r.", query)

    def list_for_user(self, user_id: str) -> list[PaginationCursor]:
        return self.repository.list_cursors(user_id)
