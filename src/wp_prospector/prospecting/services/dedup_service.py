"""Per-user link deduplication gate."""

from __future__ import annotations

from wp_prospector.prospecting.links import link_domain
from wp_prospector.prospecting.repository import SQLiteRepository


class DeduplicationGate:
    """Decides insert-or-skip for candidate links within one orchestration cycle.

    Checks both the store and links already admitted in the current cycle, so
    the same domain returned on adjacent provider pages is staged once. Links
    are compared by host, so ``http`` and ``https`` variants collide.
    """

    def __init__(self, *, repository: SQLiteRepository) -> None:
        self.repository = repository
        self._admitted: set[tuple[str, str]] = set()

    def is_duplicate(self, link: str, user_id: str) -> bool:
        domain = link_domain(link) or link
        if (user_id, domain) in self._admitted:
            return True
        return self.repository.domain_exists(link, user_id)

    def admit(self, link: str, user_id: str) -> bool:
        """Record link as staged unless it is a duplicate; return whether it was admitted."""

        if self.is_duplicate(link, user_id):
            return False
        self._admitted.add((user_id, link_domain(link) or link))
        return True
