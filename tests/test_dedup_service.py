from __future__ import annotations

import allure

from wp_prospector.prospecting.models import NewSearchResult
from wp_prospector.prospecting.repository import SQLiteRepository
from wp_prospector.prospecting.services.dedup_service import DeduplicationGate

pytestmark = [
    allure.epic("Search Cycle"),
    allure.feature("Deduplication Gate"),
]


def test_gate_skips_links_already_stored_for_user(repository: SQLiteRepository) -> None:
    repository.insert_many(
        [NewSearchResult(search_query="sklep", link="https://a.pl", user_id="u1")],
    )
    gate = DeduplicationGate(repository=repository)

    assert gate.is_duplicate("https://www.a.pl/wp-content/page", "u1")
    assert not gate.admit("https://a.pl/other", "u1")
    assert gate.admit("https://a.pl", "u2")


def test_gate_rejects_repeat_within_one_cycle(repository: SQLiteRepository) -> None:
    gate = DeduplicationGate(repository=repository)

    assert gate.admit("https://b.pl/first", "u1")
    assert not gate.admit("https://www.b.pl/second", "u1")
    assert gate.admit("https://b.pl", "u2")


def test_gate_state_does_not_leak_between_cycles(repository: SQLiteRepository) -> None:
    first = DeduplicationGate(repository=repository)
    assert first.admit("https://c.pl", "u1")

    # Nothing was persisted, so a fresh gate admits it again.
    second = DeduplicationGate(repository=repository)
    assert second.admit("https://c.pl", "u1")


def test_gate_treats_scheme_variants_as_one_domain(repository: SQLiteRepository) -> None:
    repository.insert_many(
        [NewSearchResult(search_query="sklep", link="http://d.pl", user_id="u1")],
    )
    gate = DeduplicationGate(repository=repository)

    assert gate.is_duplicate("https://www.d.pl/kontakt", "u1")
    assert gate.admit("http://e.pl/a", "u1")
    assert not gate.admit("https://e.pl/b", "u1")
