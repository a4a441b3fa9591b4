"""Processing-state transitions for stored search results."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from wp_prospector.prospecting.errors import (
    InputValidationError,
    InvalidTransitionError,
    ResultNotFoundError,
)
from wp_prospector.prospecting.links import normalize_link
from wp_prospector.prospecting.models import (
    ALLOWED_TRANSITIONS,
    ProcessingState,
    ScanCallback,
    ScanOutcome,
    ScanResolution,
    SearchResultView,
)
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.storage.common import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanVerdict:
    """Interpreted scan callback payload."""

    outcome: ScanOutcome
    error: dict[str, str] | None
    scan_details: dict[str, object] | None


def parse_processing_state(value: object) -> ProcessingState:
    """Validate a raw ``processed`` value coming from a caller."""

    if isinstance(value, bool) or not isinstance(value, int):
        raise InputValidationError(f"processed must be one of 0, 1, 2, 3 (got {value!r})")
    try:
        return ProcessingState(value)
    except ValueError as error:
        raise InputValidationError(
            f"processed must be one of 0, 1, 2, 3 (got {value!r})",
        ) from error


def interpret_scan_callback(
    callback: ScanCallback,
    *,
    now: datetime | None = None,
) -> ScanVerdict:
    """Map a scanner report onto a terminal outcome and stored payloads."""

    timestamp = (now or utc_now()).isoformat()

    def _error(error_type: str, message: str) -> dict[str, str]:
        return {"type": error_type, "message": message, "timestamp": timestamp}

    if callback.status == ScanOutcome.ERROR.value:
        return ScanVerdict(
            outcome=ScanOutcome.ERROR,
            error=_error("scan_runner_error", callback.error or "Unknown error from scan runner"),
            scan_details=None,
        )
    if callback.status != ScanOutcome.COMPLETED.value:
        return ScanVerdict(
            outcome=ScanOutcome.ERROR,
            error=_error(
                "unknown_status",
                f"Received unknown status {callback.status!r} from scan runner.",
            ),
            scan_details=None,
        )
    if not callback.data:
        return ScanVerdict(
            outcome=ScanOutcome.ERROR,
            error=_error(
                "missing_scan_data",
                "Scan reported as completed, but scanner output is missing.",
            ),
            scan_details=None,
        )
    if callback.data.get("scan_aborted"):
        return ScanVerdict(
            outcome=ScanOutcome.ERROR,
            error=_error("scan_aborted", str(callback.data["scan_aborted"])),
            scan_details=callback.data,
        )
    if callback.data.get("error"):
        return ScanVerdict(
            outcome=ScanOutcome.ERROR,
            error=_error("scan_internal_error", str(callback.data["error"])),
            scan_details=callback.data,
        )
    return ScanVerdict(outcome=ScanOutcome.COMPLETED, error=None, scan_details=callback.data)


class ProcessingStateTracker:
    """Applies the unprocessed -> in-progress -> completed/error lifecycle."""

    def __init__(self, *, repository: SQLiteRepository) -> None:
        self.repository = repository

    def mark_in_progress(self, result_id: int, user_id: str | None = None) -> SearchResultView:
        current = self._require(result_id, user_id)
        self._transition(current, ProcessingState.IN_PROGRESS)
        return self._require(result_id, user_id)

    def resolve(
        self,
        result_id: int,
        outcome: ScanOutcome,
        *,
        error: dict[str, str] | None = None,
        scan_details: dict[str, object] | None = None,
        user_id: str | None = None,
    ) -> SearchResultView:
        current = self._require(result_id, user_id)
        target = (
            ProcessingState.COMPLETED
            if outcome == ScanOutcome.COMPLETED
            else ProcessingState.ERROR
        )
        self._transition(
            current,
            target,
            errors=json.dumps(error, ensure_ascii=False) if error else None,
            scan_details=(
                json.dumps(scan_details, ensure_ascii=False) if scan_details is not None else None
            ),
            record_outcome=True,
        )
        return self._require(result_id, user_id)

    def mark_manual(self, result_id: int, status: object, user_id: str) -> None:
        """Set the state directly, as done by dashboard toggles."""

        state = parse_processing_state(status)
        if not self.repository.update_status(result_id, state, user_id=user_id):
            raise ResultNotFoundError(f"Result not found: {result_id}")
        logger.info("Result %d manually set to %s.", result_id, state.name.lower())

    def mark_manual_by_query(self, query: str, status: object, user_id: str) -> int:
        state = parse_processing_state(status)
        updated = self.repository.update_status_by_query(query, state, user_id=user_id)
        logger.info(
            "Manually set %d results of query %r to %s.",
            updated,
            query,
            state.name.lower(),
        )
        return updated

    def handle_scan_callback(self, callback: ScanCallback) -> ScanResolution:
        row = self._match_callback(callback)
        verdict = interpret_scan_callback(callback)
        resolved = self.resolve(
            row.id,
            verdict.outcome,
            error=verdict.error,
            scan_details=verdict.scan_details,
        )
        logger.info(
            "Scan callback resolved result %d to %s (details stored: %s).",
            resolved.id,
            resolved.processed.name.lower(),
            verdict.scan_details is not None,
        )
        return ScanResolution(
            result_id=resolved.id,
            status=resolved.processed,
            scan_details_stored=verdict.scan_details is not None,
        )

    def _match_callback(self, callback: ScanCallback) -> SearchResultView:
        if callback.result_id is not None:
            row = self.repository.find_by_id(callback.result_id, user_id=callback.user_id)
            if row is None:
                raise ResultNotFoundError(
                    f"No search result {callback.result_id} for this user.",
                )
            return row

        link = normalize_link(callback.url) or callback.url
        row = self.repository.find_latest_by_link(link, callback.user_id)
        if row is None:
            raise ResultNotFoundError("No matching search result found for this user and URL")
        return row

    def _require(self, result_id: int, user_id: str | None) -> SearchResultView:
        row = self.repository.find_by_id(result_id, user_id=user_id)
        if row is None:
            raise ResultNotFoundError(f"Result not found: {result_id}")
        return row

    def _transition(
        self,
        current: SearchResultView,
        target: ProcessingState,
        *,
        errors: str | None = None,
        scan_details: str | None = None,
        record_outcome: bool = False,
    ) -> None:
        if target not in ALLOWED_TRANSITIONS[current.processed]:
            raise InvalidTransitionError(
                f"Cannot move result {current.id} from "
                f"{current.processed.name.lower()} to {target.name.lower()}.",
            )
        changed = self.repository.transition_status(
            current.id,
            from_states=(current.processed,),
            to_state=target,
            errors=errors,
            scan_details=scan_details,
            record_outcome=record_outcome,
        )
        if not changed:
            raise InvalidTransitionError(
                f"Result {current.id} changed state concurrently; expected "
                f"{current.processed.name.lower()}.",
            )
