"""
Search overlay: a second pagination source that is live only while a query is set.
"""

from typing import Optional, Sequence

import structlog

from leaguemail.core.models import Contact, PaginationWindow
from leaguemail.selection.pagination import PaginationMachine

logger = structlog.get_logger(__name__)


class SearchOverlay:
    """
    Paginated search results layered over the plain contact listing.

    The overlay owns its own cursor. Submitting a different query restarts at
    page 1; re-submitting the query whose results are shown keeps the current
    page. A failed query change falls back to the results still on screen, so
    ``last_query`` always names the query the live window belongs to. Clearing
    the query deactivates the overlay without touching the plain listing.
    """

    def __init__(self):
        self.machine = PaginationMachine(name="search")
        self.last_query: str = ""
        self.committed_query: str = ""
        self.has_searched: bool = False

    @property
    def window(self) -> PaginationWindow:
        return self.machine.window

    @property
    def is_active(self) -> bool:
        return bool(self.last_query)

    @property
    def items(self) -> Sequence[Contact]:
        return self.machine.window.items

    @property
    def loading(self) -> bool:
        return self.machine.window.loading

    def begin(self, query: str) -> int:
        """
        Prepare a search submission.

        Args:
            query: Raw query text (trimmed here)

        Returns:
            The page the search request should fetch
        """
        trimmed = query.strip()
        if not trimmed:
            raise ValueError("search query must not be blank; use clear() instead")

        if trimmed != self.last_query or trimmed != self.committed_query:
            logger.debug(
                "Search query changed",
                previous=self.last_query,
                committed=self.committed_query,
                query=trimmed,
            )
            self.last_query = trimmed
            self.machine.start_loading()
            return 1

        self.machine.start_loading()
        return self.machine.committed_page

    def begin_paging(self, page: int) -> int:
        """Navigate within the current query's results."""
        self.machine.start_paginating(page)
        return page

    def commit(
        self,
        items: Sequence[Contact],
        has_next: bool,
        has_prev: bool,
        page: Optional[int] = None,
    ) -> PaginationWindow:
        self.has_searched = True
        self.committed_query = self.last_query
        return self.machine.commit(items, has_next, has_prev, page)

    def fail(self) -> PaginationWindow:
        """Roll back to the committed results, and to their query if a new one failed."""
        window = self.machine.fail()
        if self.committed_query and self.last_query != self.committed_query:
            logger.debug(
                "Search query change failed",
                query=self.last_query,
                restored=self.committed_query,
            )
            self.last_query = self.committed_query
        return window

    def clear(self) -> None:
        """Deactivate the overlay and drop its results."""
        if self.last_query:
            logger.debug("Search cleared", query=self.last_query)
        self.last_query = ""
        self.committed_query = ""
        self.has_searched = False
        self.machine.clear()
