"""Runtime configuration for search, storage, and scan collaborators."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse


@dataclass(slots=True)
class SearchSettings:
    """Search provider and orchestration-cycle settings."""

    serpapi_key: str | None = None
    page_size: int = 10
    max_pages_per_cycle: int = 1
    query_suffix: str = " inurl:wp-content"
    location: str = "Poland"
    language: str = "pl"
    country: str = "pl"
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class ScanSettings:
    """External vulnerability scan service settings."""

    service_url: str | None = None
    callback_url: str | None = None
    callback_api_key: str | None = None
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class StorageSettings:
    """SQLite storage settings."""

    busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path("data/wp_prospector.db")
    log_level: str = "INFO"
    search: SearchSettings = field(default_factory=SearchSettings)
    scan: ScanSettings = field(default_factory=ScanSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path
            or Path(os.getenv("WP_PROSPECTOR_DB_PATH", "data/wp_prospector.db")),
            log_level=os.getenv("WP_PROSPECTOR_LOG_LEVEL", "INFO").upper(),
            search=SearchSettings(
                serpapi_key=_env_str("WP_PROSPECTOR_SERPAPI_KEY", "SERPAPI_KEY"),
                page_size=int(os.getenv("WP_PROSPECTOR_SEARCH_PAGE_SIZE", "10")),
                max_pages_per_cycle=int(
                    os.getenv("WP_PROSPECTOR_SEARCH_MAX_PAGES_PER_CYCLE", "1"),
                ),
                query_suffix=os.getenv("WP_PROSPECTOR_SEARCH_QUERY_SUFFIX", " inurl:wp-content"),
                location=os.getenv("WP_PROSPECTOR_SEARCH_LOCATION", "Poland"),
                language=os.getenv("WP_PROSPECTOR_SEARCH_LANGUAGE", "pl"),
                country=os.getenv("WP_PROSPECTOR_SEARCH_COUNTRY", "pl"),
                timeout_seconds=float(os.getenv("WP_PROSPECTOR_SEARCH_TIMEOUT_SECONDS", "10.0")),
            ),
            scan=ScanSettings(
                service_url=_env_str("WP_PROSPECTOR_SCAN_SERVICE_URL"),
                callback_url=_env_str("WP_PROSPECTOR_SCAN_CALLBACK_URL"),
                callback_api_key=_env_str(
                    "WP_PROSPECTOR_CALLBACK_API_KEY",
                    "INTERNAL_CALLBACK_API_KEY",
                ),
                timeout_seconds=float(os.getenv("WP_PROSPECTOR_SCAN_TIMEOUT_SECONDS", "10.0")),
            ),
            storage=StorageSettings(
                busy_timeout_ms=int(os.getenv("WP_PROSPECTOR_BUSY_TIMEOUT_MS", "5000")),
            ),
        )

    def validate_for_search(self) -> None:
        """Raise configuration error if search settings are unusable."""

        if self.search.page_size <= 0:
            raise ValueError("WP_PROSPECTOR_SEARCH_PAGE_SIZE must be a positive integer.")
        if self.search.page_size > 100:
            raise ValueError("WP_PROSPECTOR_SEARCH_PAGE_SIZE must be <= 100.")
        if self.search.max_pages_per_cycle <= 0:
            raise ValueError("WP_PROSPECTOR_SEARCH_MAX_PAGES_PER_CYCLE must be > 0.")
        if self.search.timeout_seconds <= 0:
            raise ValueError("WP_PROSPECTOR_SEARCH_TIMEOUT_SECONDS must be > 0.")

    def validate_for_scan(self) -> None:
        """Raise configuration error if the scan collaborator is not reachable."""

        if not self.scan.service_url:
            raise ValueError("WP_PROSPECTOR_SCAN_SERVICE_URL is required to dispatch scans.")
        _validate_http_url(self.scan.service_url, name="WP_PROSPECTOR_SCAN_SERVICE_URL")
        if not self.scan.callback_url:
            raise ValueError("WP_PROSPECTOR_SCAN_CALLBACK_URL is required to dispatch scans.")
        _validate_http_url(self.scan.callback_url, name="WP_PROSPECTOR_SCAN_CALLBACK_URL")
        if self.scan.timeout_seconds <= 0:
            raise ValueError("WP_PROSPECTOR_SCAN_TIMEOUT_SECONDS must be > 0.")


def _env_str(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def _validate_http_url(value: str, *, name: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            f"Invalid {name}: {value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
