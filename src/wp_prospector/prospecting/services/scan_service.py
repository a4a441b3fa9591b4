"""Dispatches stored results to the external scan service."""

from __future__ import annotations

import logging

from wp_prospector.prospecting.errors import ScanDispatchError
from wp_prospector.prospecting.models import ScanOutcome, SearchResultView
from wp_prospector.prospecting.scan_client import ScanServiceClient
from wp_prospector.prospecting.services.status_service import ProcessingStateTracker
from wp_prospector.prospecting.storage.common import utc_now

logger = logging.getLogger(__name__)


class ScanDispatchService:
    """Marks a result in-progress, then asks the scan service to scan it."""

    def __init__(self, *, tracker: ProcessingStateTracker, client: ScanServiceClient) -> None:
        self.tracker = tracker
        self.client = client

    def dispatch(self, result_id: int, user_id: str) -> SearchResultView:
        row = self.tracker.mark_in_progress(result_id, user_id=user_id)
        try:
            self.client.request_scan(url=row.link, user_id=user_id, result_id=row.id)
        except ScanDispatchError as error:
            logger.warning("Scan dispatch failed for result %d: %s", row.id, error)
            self.tracker.resolve(
                row.id,
                ScanOutcome.ERROR,
                error={
                    "type": "scan_dispatch_error",
                    "message": str(error),
                    "timestamp": utc_now().isoformat(),
                },
                user_id=user_id,
            )
            raise
        return row
