from __future__ import annotations

import allure
import pytest

from wp_prospector.prospecting.links import is_valid_url, link_domain, normalize_link

pytestmark = [
    allure.epic("Search Cycle"),
    allure.feature("Link Normalization"),
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://www.Example.pl/wp-content/themes/x/style.css", "https://example.pl"),
        ("http://example.pl:80/?p=1#top", "http://example.pl"),
        ("https://example.pl:443/a", "https://example.pl"),
        ("https://example.pl:8443/a", "https://example.pl:8443"),
        ("example.pl/blog", "https://example.pl"),
        ("  https://sub.example.pl/  ", "https://sub.example.pl"),
    ],
)
def test_normalize_link_reduces_to_scheme_and_host(raw: str, expected: str) -> None:
    assert normalize_link(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "ftp://example.pl/file", "https://"])
def test_normalize_link_rejects_unusable_links(raw: str) -> None:
    assert normalize_link(raw) is None


def test_normalize_link_keeps_scheme_for_storage() -> None:
    assert normalize_link("http://example.pl/a") == "http://example.pl"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("http://example.pl/a", "example.pl"),
        ("https://www.Example.pl/b", "example.pl"),
        ("example.pl", "example.pl"),
        ("https://example.pl:8443/x", "example.pl:8443"),
    ],
)
def test_link_domain_ignores_scheme(raw: str, expected: str) -> None:
    assert link_domain(raw) == expected


def test_link_domain_rejects_unusable_links() -> None:
    assert link_domain("ftp://example.pl") is None


def test_is_valid_url_requires_absolute_http_url() -> None:
    assert is_valid_url("https://example.pl/page")
    assert is_valid_url("http://example.pl")
    assert not is_valid_url("example.pl/page")
    assert not is_valid_url("not a url")
    assert not is_valid_url("ftp://example.pl")
