"""HTTP client for the external vulnerability scan service."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from wp_prospector.prospecting.errors import ScanDispatchError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanServiceConfig:
    """Scan service endpoint settings."""

    service_url: str
    callback_url: str
    timeout_seconds: float = 10.0


class ScanServiceClient:
    """Requests asynchronous scans; results arrive later through the callback route."""

    def __init__(self, config: ScanServiceConfig, *, client: httpx.Client | None = None) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(config.timeout_seconds))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ScanServiceClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def request_scan(self, *, url: str, user_id: str, result_id: int) -> None:
        endpoint = f"{self.config.service_url.rstrip('/')}/scan"
        payload = {
            "url": url,
            "userId": user_id,
            "resultId": result_id,
            "callbackUrl": self.config.callback_url,
        }
        try:
            response = self._client.post(endpoint, json=payload)
        except httpx.TimeoutException as error:
            raise ScanDispatchError(f"Scan service timed out for {url}", code="timeout") from error
        except httpx.HTTPError as error:
            raise ScanDispatchError(f"Scan service unreachable for {url}: {error}") from error

        if not response.is_success:
            raise ScanDispatchError(
                f"Scan service rejected {url} with HTTP {response.status_code}",
                code=f"http_{response.status_code}",
            )
        logger.info("Scan requested for result %d (%s).", result_id, url)
