"""
Pagination state machine for cursor-only contact collections.

Every transition is a tagged event consumed by a pure function that returns a
brand-new PaginationWindow, so no caller can observe a half-updated window
(for example, new items paired with the previous page's hasNext flag).
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import structlog

from leaguemail.core.models import Contact, PaginationWindow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StartLoading:
    """First fetch, or a full reset such as a page-size change."""


@dataclass(frozen=True)
class StartPaginating:
    """Next/previous navigation towards ``page``."""

    page: int


@dataclass(frozen=True)
class Commit:
    """A fetch completed; ``page`` is only replaced when supplied."""

    items: Tuple[Contact, ...]
    has_next: bool
    has_prev: bool
    page: Optional[int] = None


@dataclass(frozen=True)
class Fail:
    """A fetch failed; keep the displayed items and restore ``page``."""

    page: int


@dataclass(frozen=True)
class Reset:
    """Drop everything and wait for a fresh first page."""


@dataclass(frozen=True)
class Clear:
    """Return to the idle, empty first page."""


PaginationEvent = Union[StartLoading, StartPaginating, Commit, Fail, Reset, Clear]

INITIAL_WINDOW = PaginationWindow()


def transition(window: PaginationWindow, event: PaginationEvent) -> PaginationWindow:
    """
    Apply one event to a window.

    Args:
        window: Current window, never modified
        event: Transition to apply

    Returns:
        A new PaginationWindow
    """
    if isinstance(event, StartLoading):
        return window.model_copy(
            update={
                "loading": True,
                "is_initial_load": len(window.items) == 0,
                "is_paginating": False,
            }
        )

    if isinstance(event, StartPaginating):
        if event.page < 1:
            raise ValueError(f"page must be >= 1, got {event.page}")
        return window.model_copy(
            update={
                "loading": True,
                "is_initial_load": False,
                "is_paginating": True,
                "page": event.page,
            }
        )

    if isinstance(event, Commit):
        # Validated construction rather than model_copy so bad pages are rejected
        return PaginationWindow(
            items=tuple(event.items),
            page=event.page if event.page is not None else window.page,
            has_next=event.has_next,
            has_prev=event.has_prev,
            loading=False,
            is_initial_load=False,
            is_paginating=False,
        )

    if isinstance(event, Fail):
        return window.model_copy(
            update={
                "page": event.page,
                "loading": False,
                "is_initial_load": False,
                "is_paginating": False,
            }
        )

    if isinstance(event, Reset):
        return PaginationWindow(loading=True, is_initial_load=True)

    if isinstance(event, Clear):
        return INITIAL_WINDOW

    raise TypeError(f"Unknown pagination event: {event!r}")


class PaginationMachine:
    """
    Holder for the authoritative window of one pagination source.

    The window is swapped wholesale on every dispatch; the page of the last
    committed window is remembered so a failed navigation can roll back.
    """

    def __init__(self, name: str = "plain", window: Optional[PaginationWindow] = None):
        self.name = name
        self._window = window or INITIAL_WINDOW
        self._committed_page = self._window.page

    @property
    def window(self) -> PaginationWindow:
        return self._window

    @property
    def committed_page(self) -> int:
        return self._committed_page

    def dispatch(self, event: PaginationEvent) -> PaginationWindow:
        self._window = transition(self._window, event)
        if isinstance(event, (Commit, Reset, Clear)):
            self._committed_page = self._window.page

        logger.debug(
            "Pagination transition",
            source=self.name,
            transition=type(event).__name__,
            page=self._window.page,
            items=len(self._window.items),
            loading=self._window.loading,
        )
        return self._window

    def start_loading(self) -> PaginationWindow:
        return self.dispatch(StartLoading())

    def start_paginating(self, page: int) -> PaginationWindow:
        return self.dispatch(StartPaginating(page))

    def commit(
        self,
        items: Sequence[Contact],
        has_next: bool,
        has_prev: bool,
        page: Optional[int] = None,
    ) -> PaginationWindow:
        return self.dispatch(Commit(tuple(items), has_next, has_prev, page))

    def fail(self) -> PaginationWindow:
        return self.dispatch(Fail(self._committed_page))

    def reset(self) -> PaginationWindow:
        return self.dispatch(Reset())

    def clear(self) -> PaginationWindow:
        return self.dispatch(Clear())
