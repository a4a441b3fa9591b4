from __future__ import annotations

from pathlib import Path

import allure
import pytest

from wp_prospector.config import ScanSettings, SearchSettings, Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_from_env_reads_prefixed_values(monkeypatch) -> None:
    monkeypatch.setenv("WP_PROSPECTOR_DB_PATH", "/tmp/leads.db")
    monkeypatch.setenv("WP_PROSPECTOR_LOG_LEVEL", "debug")
    monkeypatch.setenv("WP_PROSPECTOR_SERPAPI_KEY", "prefixed-key")
    monkeypatch.setenv("SERPAPI_KEY", "plain-key")
    monkeypatch.setenv("WP_PROSPECTOR_SEARCH_PAGE_SIZE", "20")
    monkeypatch.setenv("WP_PROSPECTOR_SEARCH_MAX_PAGES_PER_CYCLE", "3")
    monkeypatch.setenv("WP_PROSPECTOR_SEARCH_LOCATION", "Germany")

    settings = Settings.from_env()

    assert settings.db_path == Path("/tmp/leads.db")
    assert settings.log_level == "DEBUG"
    assert settings.search.serpapi_key == "prefixed-key"
    assert settings.search.page_size == 20
    assert settings.search.max_pages_per_cycle == 3
    assert settings.search.location == "Germany"


def test_from_env_falls_back_to_unprefixed_secrets(monkeypatch) -> None:
    monkeypatch.delenv("WP_PROSPECTOR_SERPAPI_KEY", raising=False)
    monkeypatch.delenv("WP_PROSPECTOR_CALLBACK_API_KEY", raising=False)
    monkeypatch.setenv("SERPAPI_KEY", "plain-key")
    monkeypatch.setenv("INTERNAL_CALLBACK_API_KEY", "callback-secret")

    settings = Settings.from_env(db_path=Path("custom.db"))

    assert settings.db_path == Path("custom.db")
    assert settings.search.serpapi_key == "plain-key"
    assert settings.scan.callback_api_key == "callback-secret"


def test_search_defaults_target_wordpress_sites() -> None:
    search = SearchSettings()

    assert search.page_size == 10
    assert search.max_pages_per_cycle == 1
    assert search.query_suffix == " inurl:wp-content"


@pytest.mark.parametrize(
    ("search", "message"),
    [
        (SearchSettings(page_size=0), "PAGE_SIZE must be a positive integer"),
        (SearchSettings(page_size=101), "PAGE_SIZE must be <= 100"),
        (SearchSettings(max_pages_per_cycle=0), "MAX_PAGES_PER_CYCLE"),
        (SearchSettings(timeout_seconds=0), "TIMEOUT_SECONDS"),
    ],
)
def test_validate_for_search_rejects_bad_values(search: SearchSettings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        Settings(search=search).validate_for_search()


def test_validate_for_scan_requires_absolute_urls() -> None:
    with pytest.raises(ValueError, match="SCAN_SERVICE_URL is required"):
        Settings().validate_for_scan()

    with pytest.raises(ValueError, match="Invalid WP_PROSPECTOR_SCAN_SERVICE_URL"):
        Settings(
            scan=ScanSettings(service_url="scanner:8080", callback_url="https://x.pl/api/save"),
        ).validate_for_scan()

    Settings(
        scan=ScanSettings(
            service_url="http://scanner.internal:8080",
            callback_url="https://x.pl/api/save",
        ),
    ).validate_for_scan()
