"""Common search provider contracts."""

from __future__ import annotations

from typing import Protocol

from wp_prospector.prospecting.models import ProviderPage


class SearchProvider(Protocol):
    """Interface for paginated web search providers."""

    name: str

    def fetch_page(self, query: str, *, start_offset: int, page_size: int) -> ProviderPage:
        """Fetch one page of organic results starting at the given offset.

        Raises SearchProviderError on transport failures, timeouts, and
        provider-reported errors.
        """
        raise NotImplementedError
