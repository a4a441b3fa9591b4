from __future__ import annotations

import allure
import httpx
import pytest

from wp_prospector.prospecting.errors import ProviderNotConfiguredError, SearchProviderError
from wp_prospector.prospecting.sources.serpapi import SerpApiConfig, SerpApiProvider

pytestmark = [
    allure.epic("Search Cycle"),
    allure.feature("SerpApi Provider"),
]


def _provider(handler, **overrides) -> SerpApiProvider:
    config = SerpApiConfig(api_key="test-key", **overrides)
    return SerpApiProvider(config, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_fetch_page_sends_search_parameters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "organic_results": [
                    {"link": "https://a.pl/wp-content/x", "title": "A", "snippet": "first"},
                    {"link": "https://b.pl/", "title": "B"},
                    "garbage",
                ],
            },
        )

    page = _provider(handler).fetch_page("sklep", start_offset=20, page_size=10)

    params = seen[0].url.params
    assert params["engine"] == "google"
    assert params["q"] == "sklep inurl:wp-content"
    assert params["start"] == "20"
    assert params["num"] == "10"
    assert params["hl"] == "pl"
    assert params["gl"] == "pl"
    assert params["location"] == "Poland"
    assert params["api_key"] == "test-key"
    assert page.start_offset == 20
    assert [result.link for result in page.results] == [
        "https://a.pl/wp-content/x",
        "https://b.pl/",
    ]
    assert page.results[1].snippet is None


def test_fetch_page_omits_empty_location() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    page = _provider(handler, location=None).fetch_page("sklep", start_offset=0, page_size=10)

    assert "location" not in seen[0].url.params
    assert page.results == []


def test_end_of_results_error_is_an_empty_page() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"error": "Google hasn't returned any results for this query."},
        )

    page = _provider(handler).fetch_page("sklep", start_offset=90, page_size=10)

    assert page.results == []


@pytest.mark.parametrize(
    ("response", "code"),
    [
        (httpx.Response(401, json={"error": "Invalid API key."}), "http_401"),
        (httpx.Response(503, text="upstream down"), "http_503"),
        (httpx.Response(500, json={"unexpected": True}), "http_500"),
    ],
)
def test_provider_errors_raise_with_offset(response: httpx.Response, code: str) -> None:
    provider = _provider(lambda _: response)

    with pytest.raises(SearchProviderError) as info:
        provider.fetch_page("sklep", start_offset=10, page_size=10)

    assert info.value.code == code
    assert info.value.start_offset == 10


def test_transport_timeout_is_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(SearchProviderError, match="timed out") as info:
        _provider(handler).fetch_page("sklep", start_offset=0, page_size=10)
    assert info.value.code == "timeout"


def test_missing_api_key_is_not_configured() -> None:
    with pytest.raises(ProviderNotConfiguredError, match="SerpAPI key not configured"):
        SerpApiProvider(SerpApiConfig(api_key=None))
