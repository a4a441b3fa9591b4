"""SerpApi Google search provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from wp_prospector.prospecting.errors import ProviderNotConfiguredError, SearchProviderError
from wp_prospector.prospecting.models import OrganicResult, ProviderPage

logger = logging.getLogger(__name__)

SERPAPI_SEARCH_URL = "https://serpapi.com/search.json"
# SerpApi reports an exhausted result set as an error payload.
END_OF_RESULTS_MARKERS = ("hasn't returned any results",)


@dataclass(slots=True)
class SerpApiConfig:
    """SerpApi request settings."""

    api_key: str | None
    query_suffix: str = " inurl:wp-content"
    location: str | None = "Poland"
    language: str = "pl"
    country: str = "pl"
    timeout_seconds: float = 10.0
    base_url: str = SERPAPI_SEARCH_URL


class SerpApiProvider:
    """Fetches Google organic results through SerpApi."""

    name = "serpapi"

    def __init__(self, config: SerpApiConfig, *, client: httpx.Client | None = None) -> None:
        if not config.api_key:
            raise ProviderNotConfiguredError(
                "SerpAPI key not configured. Set SERPAPI_KEY or WP_PROSPECTOR_SERPAPI_KEY.",
            )
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(config.timeout_seconds),
            follow_redirects=True,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> SerpApiProvider:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def fetch_page(self, query: str, *, start_offset: int, page_size: int) -> ProviderPage:
        params: dict[str, str | int] = {
            "engine": "google",
            "q": f"{query}{self.config.query_suffix}",
            "hl": self.config.language,
            "gl": self.config.country,
            "start": start_offset,
            "num": page_size,
            "api_key": self.config.api_key or "",
        }
        if self.config.location:
            params["location"] = self.config.location

        try:
            response = self._client.get(self.config.base_url, params=params)
        except httpx.TimeoutException as error:
            raise SearchProviderError(
                f"SerpApi request timed out at offset {start_offset}",
                code="timeout",
                start_offset=start_offset,
            ) from error
        except httpx.HTTPError as error:
            raise SearchProviderError(
                f"SerpApi request failed at offset {start_offset}: {error}",
                start_offset=start_offset,
            ) from error

        payload = _json_payload(response, start_offset=start_offset)
        provider_error = payload.get("error")
        if provider_error:
            if _is_end_of_results(str(provider_error)):
                logger.info("SerpApi reports no more results at offset %d.", start_offset)
                return ProviderPage(start_offset=start_offset, results=[])
            raise SearchProviderError(
                f"SerpApi error at offset {start_offset}: {provider_error}",
                code=f"http_{response.status_code}",
                start_offset=start_offset,
            )
        if not response.is_success:
            raise SearchProviderError(
                f"SerpApi returned HTTP {response.status_code} at offset {start_offset}",
                code=f"http_{response.status_code}",
                start_offset=start_offset,
            )

        return ProviderPage(
            start_offset=start_offset,
            results=_parse_organic_results(payload.get("organic_results")),
        )


def _json_payload(response: httpx.Response, *, start_offset: int) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as error:
        raise SearchProviderError(
            f"SerpApi returned non-JSON body (HTTP {response.status_code}) "
            f"at offset {start_offset}",
            code=f"http_{response.status_code}",
            start_offset=start_offset,
        ) from error
    if not isinstance(payload, dict):
        raise SearchProviderError(
            f"SerpApi returned unexpected payload type at offset {start_offset}",
            start_offset=start_offset,
        )
    return payload


def _parse_organic_results(raw: object) -> list[OrganicResult]:
    if not isinstance(raw, list):
        return []
    results: list[OrganicResult] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        results.append(
            OrganicResult(
                link=str(item.get("link") or ""),
                title=item.get("title") or None,
                snippet=item.get("snippet") or None,
            ),
        )
    return results


def _is_end_of_results(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in END_OF_RESULTS_MARKERS)
