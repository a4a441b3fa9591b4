from __future__ import annotations

from pathlib import Path

import allure
from click.testing import CliRunner
from conftest import ScriptedProvider, site_links

from wp_prospector import __version__
from wp_prospector.main import wp_prospector
from wp_prospector.prospecting import controllers

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Search Commands"),
]


def test_version_option() -> None:
    result = CliRunner().invoke(wp_prospector, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_db_upgrade_creates_schema(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"

    result = CliRunner().invoke(wp_prospector, ["db", "upgrade", "--db-path", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Schema is at head" in result.output
    assert db_path.exists()


def test_search_run_history_results_and_delete(tmp_path: Path, monkeypatch) -> None:
    provider = ScriptedProvider({0: site_links("shop", 10), 10: site_links("blog", 2)})
    monkeypatch.setenv("WP_PROSPECTOR_SERPAPI_KEY", "test-key")
    monkeypatch.setattr(controllers, "build_search_provider", lambda _settings: _Closing(provider))
    db_path = tmp_path / "cli.db"
    runner = CliRunner()
    common = ["--db-path", str(db_path), "--user-id", "u1"]

    first = runner.invoke(wp_prospector, ["search", "run", "sklep", *common])
    second = runner.invoke(wp_prospector, ["search", "run", "sklep", *common])
    history = runner.invoke(wp_prospector, ["search", "history", *common])
    results = runner.invoke(wp_prospector, ["search", "results", "sklep", *common])
    deleted = runner.invoke(wp_prospector, ["search", "delete", "sklep", *common])
    empty = runner.invoke(wp_prospector, ["search", "results", "sklep", *common])

    assert first.exit_code == 0, first.output
    assert "inserted=10" in first.output
    assert "next_start=10" in first.output
    assert "inserted=2" in second.output
    assert "total_requests=2" in second.output
    assert "Stored results: 12 across 1 queries" in history.output
    assert "next_start=20 requests=2" in history.output
    assert "Results for query 'sklep': 12" in results.output
    assert "status=unprocessed" in results.output
    assert "Deleted 12 results" in deleted.output
    assert "No stored results for query 'sklep'" in empty.output
    assert provider.offsets == [0, 10]


def test_search_run_without_key_fails_cleanly(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("WP_PROSPECTOR_SERPAPI_KEY", raising=False)
    monkeypatch.delenv("SERPAPI_KEY", raising=False)

    result = CliRunner().invoke(
        wp_prospector,
        ["search", "run", "sklep", "--db-path", str(tmp_path / "cli.db"), "--user-id", "u1"],
    )

    assert result.exit_code == 1
    assert "SerpAPI key not configured" in result.output


class _Closing:
    """Context-manager wrapper so the scripted provider fits the controller's `with` block."""

    def __init__(self, provider: ScriptedProvider) -> None:
        self.provider = provider
        self.name = provider.name

    def __enter__(self) -> ScriptedProvider:
        return self.provider

    def __exit__(self, *_: object) -> None:
        self.provider.close()


def test_search_run_fails_when_provider_returns_nothing(tmp_path: Path, monkeypatch) -> None:
    provider = ScriptedProvider(failing_offsets={0})
    monkeypatch.setenv("WP_PROSPECTOR_SERPAPI_KEY", "test-key")
    monkeypatch.setattr(controllers, "build_search_provider", lambda _settings: _Closing(provider))

    result = CliRunner().invoke(
        wp_prospector,
        ["search", "run", "sklep", "--db-path", str(tmp_path / "cli.db"), "--user-id", "u1"],
    )

    assert result.exit_code == 1
    assert "Search provider request failed" in result.output
    assert provider.closed is True
