"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from wp_prospector.prospecting.errors import SearchProviderError
from wp_prospector.prospecting.models import OrganicResult, ProviderPage
from wp_prospector.prospecting.repository import SQLiteRepository


class ScriptedProvider:
    """Search provider returning canned pages per offset and recording calls."""

    name = "scripted"

    def __init__(
        self,
        pages: dict[int, list[str]] | None = None,
        *,
        failing_offsets: set[int] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.failing_offsets = failing_offsets or set()
        self.calls: list[tuple[str, int, int]] = []
        self.closed = False

    def fetch_page(self, query: str, *, start_offset: int, page_size: int) -> ProviderPage:
        self.calls.append((query, start_offset, page_size))
        if start_offset in self.failing_offsets:
            raise SearchProviderError(
                f"scripted failure at offset {start_offset}",
                start_offset=start_offset,
            )
        links = self.pages.get(start_offset, [])
        return ProviderPage(
            start_offset=start_offset,
            results=[
                OrganicResult(link=link, title=f"Title {index}", snippet=f"Snippet {index}")
                for index, link in enumerate(links, start=1)
            ],
        )

    def close(self) -> None:
        self.closed = True

    @property
    def offsets(self) -> list[int]:
        return [offset for _, offset, _ in self.calls]


def site_links(prefix: str, count: int) -> list[str]:
    return [
        f"https://www.{prefix}{index}.pl/wp-content/uploads/page-{index}" for index in range(count)
    ]


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[SQLiteRepository]:
    repo = SQLiteRepository(tmp_path / "prospector.db")
    repo.init_schema()
    yield repo
    repo.close()
