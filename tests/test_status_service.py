from __future__ import annotations

import json
from datetime import UTC, datetime

import allure
import pytest

from wp_prospector.prospecting.errors import (
    InputValidationError,
    InvalidTransitionError,
    ResultNotFoundError,
)
from wp_prospector.prospecting.models import (
    NewSearchResult,
    ProcessingState,
    ScanCallback,
    ScanOutcome,
)
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.services.status_service import (
    ProcessingStateTracker,
    interpret_scan_callback,
    parse_processing_state,
)

pytestmark = [
    allure.epic("Scan Tracking"),
    allure.feature("Processing State"),
]

_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _seed(repository: SQLiteRepository, link: str = "https://a.pl", user_id: str = "u1") -> int:
    [result_id] = repository.insert_many(
        [NewSearchResult(search_query="sklep", link=link, user_id=user_id)],
    )
    return result_id


def _callback(**overrides: object) -> ScanCallback:
    values: dict[str, object] = {
        "user_id": "u1",
        "url": "https://www.a.pl/wp-login.php",
        "status": "completed",
        "data": {"plugins": ["contact-form-7"], "vulnerabilities": []},
    }
    values.update(overrides)
    return ScanCallback(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize("value", [0, 1, 2, 3])
def test_parse_processing_state_accepts_known_states(value: int) -> None:
    assert parse_processing_state(value) == ProcessingState(value)


@pytest.mark.parametrize("value", [4, -1, "1", None, True, 1.0])
def test_parse_processing_state_rejects_other_values(value: object) -> None:
    with pytest.raises(InputValidationError, match="processed must be one of"):
        parse_processing_state(value)


def test_interpret_completed_callback_with_data() -> None:
    verdict = interpret_scan_callback(_callback(), now=_NOW)

    assert verdict.outcome == ScanOutcome.COMPLETED
    assert verdict.error is None
    assert verdict.scan_details == {"plugins": ["contact-form-7"], "vulnerabilities": []}


@pytest.mark.parametrize(
    ("overrides", "error_type", "keeps_details"),
    [
        ({"status": "error", "error": "wpscan crashed", "data": None}, "scan_runner_error", False),
        ({"status": "queued"}, "unknown_status", False),
        ({"data": None}, "missing_scan_data", False),
        ({"data": {"scan_aborted": "Target is not WordPress"}}, "scan_aborted", True),
        ({"data": {"error": "timeout while scanning"}}, "scan_internal_error", True),
    ],
)
def test_interpret_failed_callbacks(
    overrides: dict[str, object],
    error_type: str,
    keeps_details: bool,
) -> None:
    verdict = interpret_scan_callback(_callback(**overrides), now=_NOW)

    assert verdict.outcome == ScanOutcome.ERROR
    assert verdict.error is not None
    assert verdict.error["type"] == error_type
    assert verdict.error["timestamp"] == _NOW.isoformat()
    assert (verdict.scan_details is not None) is keeps_details


def test_lifecycle_unprocessed_to_completed(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)

    in_progress = tracker.mark_in_progress(result_id, user_id="u1")
    resolved = tracker.resolve(result_id, ScanOutcome.COMPLETED, scan_details={"ok": True})

    assert in_progress.processed == ProcessingState.IN_PROGRESS
    assert resolved.processed == ProcessingState.COMPLETED
    assert json.loads(resolved.scan_details or "null") == {"ok": True}
    assert resolved.errors is None


def test_completed_requires_in_progress(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)

    with pytest.raises(InvalidTransitionError, match="unprocessed to completed"):
        tracker.resolve(result_id, ScanOutcome.COMPLETED)

    row = repository.find_by_id(result_id)
    assert row is not None
    assert row.processed == ProcessingState.UNPROCESSED


def test_error_can_be_retried(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)
    tracker.mark_in_progress(result_id)
    tracker.resolve(
        result_id,
        ScanOutcome.ERROR,
        error={"type": "scan_runner_error", "message": "boom", "timestamp": _NOW.isoformat()},
    )

    retried = tracker.mark_in_progress(result_id)
    completed = tracker.resolve(result_id, ScanOutcome.COMPLETED, scan_details={"ok": True})

    assert retried.processed == ProcessingState.IN_PROGRESS
    assert completed.processed == ProcessingState.COMPLETED
    assert completed.errors is None


def test_completed_is_terminal_for_scan_flow(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)
    tracker.mark_in_progress(result_id)
    tracker.resolve(result_id, ScanOutcome.COMPLETED, scan_details={})

    with pytest.raises(InvalidTransitionError):
        tracker.mark_in_progress(result_id)


def test_mark_manual_sets_state_directly(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)

    tracker.mark_manual(result_id, 2, "u1")

    row = repository.find_by_id(result_id)
    assert row is not None
    assert row.processed == ProcessingState.COMPLETED


def test_mark_manual_is_scoped_to_user(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)

    with pytest.raises(ResultNotFoundError):
        tracker.mark_manual(result_id, 2, "u2")
    with pytest.raises(InputValidationError):
        tracker.mark_manual(result_id, 7, "u1")


def test_mark_manual_by_query_counts_rows(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    _seed(repository, "https://a.pl")
    _seed(repository, "https://b.pl")
    _seed(repository, "https://c.pl", user_id="u2")

    assert tracker.mark_manual_by_query("sklep", 2, "u1") == 2


def test_callback_matches_by_normalized_link(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)
    tracker.mark_in_progress(result_id)

    resolution = tracker.handle_scan_callback(_callback())

    assert resolution.result_id == result_id
    assert resolution.status == ProcessingState.COMPLETED
    assert resolution.scan_details_stored is True


def test_callback_matches_row_stored_under_other_scheme(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository, "http://a.pl")
    tracker.mark_in_progress(result_id)

    resolution = tracker.handle_scan_callback(_callback())

    assert resolution.result_id == result_id
    assert resolution.status == ProcessingState.COMPLETED


def test_callback_prefers_explicit_result_id(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    _seed(repository)
    other_id = _seed(repository, "https://b.pl")
    tracker.mark_in_progress(other_id)

    resolution = tracker.handle_scan_callback(
        _callback(result_id=other_id, status="error", error="wpscan crashed", data=None),
    )

    assert resolution.result_id == other_id
    assert resolution.status == ProcessingState.ERROR
    assert resolution.scan_details_stored is False
    row = repository.find_by_id(other_id)
    assert row is not None
    assert json.loads(row.errors or "{}")["type"] == "scan_runner_error"


def test_callback_for_unknown_link_or_user_is_not_found(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    result_id = _seed(repository)
    tracker.mark_in_progress(result_id)

    with pytest.raises(ResultNotFoundError):
        tracker.handle_scan_callback(_callback(url="https://unknown.pl"))
    with pytest.raises(ResultNotFoundError):
        tracker.handle_scan_callback(_callback(user_id="u2"))
    with pytest.raises(ResultNotFoundError):
        tracker.handle_scan_callback(_callback(result_id=result_id, user_id="u2"))


def test_callback_for_row_not_in_progress_is_rejected(repository: SQLiteRepository) -> None:
    tracker = ProcessingStateTracker(repository=repository)
    _seed(repository)

    with pytest.raises(InvalidTransitionError):
        tracker.handle_scan_callback(_callback())
