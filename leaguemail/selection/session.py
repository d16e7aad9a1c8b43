"""
Recipient selection session.

Ties together the plain listing, the search overlay, the selection cache and
the request coordinator behind the commands and read properties an email
composer needs.
"""

import asyncio
import time
import uuid
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

import structlog

from leaguemail.contacts.normalize import normalize_contacts
from leaguemail.core.config import Settings, get_settings
from leaguemail.core.exceptions import DirectoryServiceError
from leaguemail.core.logging import bind_session_context, clear_session_context
from leaguemail.core.models import (
    Contact,
    GroupKind,
    PageResult,
    PaginationWindow,
    RecipientGroup,
    RecipientSelectionState,
)
from leaguemail.data.directory_client import DirectoryService
from leaguemail.selection.aggregate import SelectionAggregate
from leaguemail.selection.cache import SelectionCache
from leaguemail.selection.coordinator import RequestCoordinator, RequestSource
from leaguemail.selection.debounce import Debouncer
from leaguemail.selection.pagination import PaginationMachine
from leaguemail.selection.resolver import CacheSource, HybridResolver, ItemsSource
from leaguemail.selection.search import SearchOverlay

logger = structlog.get_logger(__name__)


class RecipientSelectionSession:
    """
    Select email recipients from a directory that is only ever seen a page at a time.

    The session is single-threaded: every command runs synchronously on the
    event loop and fetches run as coordinator tasks. Use ``wait_idle()`` to
    wait for pending searches and fetches to settle.

    Example:
        async with RecipientSelectionSession(client, "42", token) as session:
            await session.wait_idle()
            session.toggle_select(session.contacts[0].id)
    """

    def __init__(
        self,
        directory: DirectoryService,
        account_id: str,
        auth_token: Optional[str],
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.directory = directory
        self.account_id = account_id
        self.auth_token = auth_token
        self.session_id = str(uuid.uuid4())[:8]

        selection_config = self.settings.selection
        self._page_size = selection_config.page_size

        self.plain = PaginationMachine(name="plain")
        self.search = SearchOverlay()
        self.cache = SelectionCache(capacity=selection_config.cache_capacity, clock=clock)
        self.resolver = HybridResolver(
            [
                ItemsSource("plain_page", lambda: self.plain.window.items),
                ItemsSource(
                    "search_results",
                    lambda: self.search.items,
                    enabled=lambda: self.search.is_active,
                ),
                CacheSource(self.cache),
            ]
        )
        self.aggregate = SelectionAggregate(self.resolver)
        self.coordinator = RequestCoordinator.from_config(self.settings.directory)
        self.debouncer = Debouncer(
            selection_config.search_debounce_seconds, self._submit_search, name="search"
        )

        self._selected_ids: Set[str] = set()
        self._groups: Dict[Tuple[GroupKind, str], RecipientGroup] = {}
        self._all_selected = False
        self._last_selected_id: Optional[str] = None
        self._search_text = ""
        self._plain_limit: Optional[int] = None
        self._state = RecipientSelectionState()

        self.last_error: Optional[DirectoryServiceError] = None
        self._failed: Optional[Tuple[RequestSource, Callable[[], asyncio.Task]]] = None
        self._opened = False

    async def __aenter__(self) -> "RecipientSelectionSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> asyncio.Task:
        """Start loading the first page of the plain listing."""
        bind_session_context(self.session_id, self.account_id)
        self._opened = True
        logger.info("Recipient selection session opened", page_size=self._page_size)
        return self._load_plain(1)

    async def close(self) -> None:
        """Cancel pending work and forget every selection."""
        self.debouncer.cancel()
        tasks = self.coordinator.pending_tasks()
        self.coordinator.abort_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self.cache.clear()
        self._selected_ids.clear()
        self._groups.clear()
        self._all_selected = False
        self._last_selected_id = None
        self._state = RecipientSelectionState()
        self._failed = None

        if self._opened:
            logger.info("Recipient selection session closed", cache_stats=self.cache.stats.to_dict())
            clear_session_context()
        self._opened = False

    async def wait_idle(self) -> None:
        """Wait until no search is pending and no fetch is in flight."""
        while self.debouncer.pending or self.coordinator.pending_tasks():
            if self.debouncer.pending:
                await asyncio.sleep(self.debouncer.delay)
                continue
            await asyncio.gather(*self.coordinator.pending_tasks(), return_exceptions=True)

    # Read properties

    @property
    def in_search_mode(self) -> bool:
        return self.search.is_active

    @property
    def window(self) -> PaginationWindow:
        """The live window: search results while a query is active, else the plain page."""
        return self.search.window if self.search.is_active else self.plain.window

    @property
    def contacts(self) -> Tuple[Contact, ...]:
        return self.window.items

    @property
    def loading(self) -> bool:
        return self.window.loading

    @property
    def is_initial_load(self) -> bool:
        return self.window.is_initial_load

    @property
    def is_paginating(self) -> bool:
        return self.window.is_paginating

    @property
    def has_next(self) -> bool:
        return self.window.has_next

    @property
    def has_prev(self) -> bool:
        return self.window.has_prev

    @property
    def page(self) -> int:
        return self.window.page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def search_query(self) -> str:
        return self._search_text

    @property
    def search_loading(self) -> bool:
        return self.search.loading

    @property
    def selected_ids(self) -> frozenset:
        return frozenset(self._selected_ids)

    @property
    def all_selected(self) -> bool:
        return self._all_selected

    @property
    def state(self) -> RecipientSelectionState:
        return self._state

    @property
    def selected_contacts(self) -> List[Contact]:
        return self.cache.contacts()

    @property
    def selected_groups(self) -> Tuple[RecipientGroup, ...]:
        return tuple(self._groups.values())

    def resolve(self, contact_id: str) -> Optional[Contact]:
        return self.resolver.resolve(contact_id)

    def is_selected(self, contact_id: str) -> bool:
        """Whether a contact is reached by "everyone", an explicit selection or a group."""
        if self._all_selected or contact_id in self._selected_ids:
            return True
        return any(group.contains(contact_id) for group in self._groups.values())

    def effective_recipients(self) -> List[Contact]:
        """
        The contacts the selection reaches, each once.

        Empty in "everyone" mode: those recipients are expanded by the
        directory service, not here.
        """
        if self._all_selected:
            return []
        return self.aggregate.effective_recipients(self._selected_ids, self.selected_groups)

    # Selection commands

    def toggle_select(self, contact_id: str) -> bool:
        """
        Select or deselect one contact.

        Deselection always succeeds. Selection only succeeds for a contact
        that resolves and has a valid email, and switches off "everyone" mode.

        Returns:
            Whether the selection changed
        """
        if contact_id in self._selected_ids:
            self._selected_ids.discard(contact_id)
            self.cache.remove(contact_id)
            self._last_selected_id = contact_id
            logger.debug("Contact deselected", contact_id=contact_id)
            self._recompute()
            return True

        contact, source_name = self.resolver.resolve_with_source(contact_id)
        if contact is None or not contact.has_valid_email:
            logger.debug(
                "Selection rejected",
                contact_id=contact_id,
                reason="unresolved" if contact is None else "invalid_email",
            )
            return False

        self._all_selected = False
        self._add(contact)
        self._last_selected_id = contact_id
        logger.debug("Contact selected", contact_id=contact_id, resolved_from=source_name)
        self._recompute()
        return True

    def select_all_visible(self) -> int:
        """Add every valid-email contact of the live window; returns how many were added."""
        self._all_selected = False
        added = 0
        for contact in self.contacts:
            if contact.has_valid_email and contact.id not in self._selected_ids:
                self._add(contact)
                added += 1

        logger.debug("Visible contacts selected", added=added, total=len(self._selected_ids))
        self._recompute()
        return added

    def select_range(self, from_id: str, to_id: str) -> int:
        """
        Select the valid-email contacts between two visible contacts, inclusive.

        Returns:
            How many contacts were added; 0 when either end is not visible
        """
        ids = [contact.id for contact in self.contacts]
        if from_id not in ids or to_id not in ids:
            logger.debug("Range selection ignored", from_id=from_id, to_id=to_id)
            return 0

        start, end = sorted((ids.index(from_id), ids.index(to_id)))
        self._all_selected = False
        added = 0
        for contact in self.contacts[start : end + 1]:
            if contact.has_valid_email and contact.id not in self._selected_ids:
                self._add(contact)
                added += 1

        self._last_selected_id = to_id
        self._recompute()
        return added

    def select_everyone(self) -> None:
        self._selected_ids.clear()
        self._groups.clear()
        self.cache.clear()
        self._all_selected = True
        self._last_selected_id = None
        logger.debug("All contacts selected")
        self._recompute()

    def clear_selection(self) -> None:
        self._selected_ids.clear()
        self._groups.clear()
        self.cache.clear()
        self._all_selected = False
        self._last_selected_id = None
        self._recompute()

    def select_group(self, group: RecipientGroup) -> bool:
        """
        Add a team or role as a whole; switches off "everyone" mode.

        Returns:
            False when a group of the same kind and id is already selected
        """
        key = (group.kind, group.group_id)
        if key in self._groups:
            return False

        self._all_selected = False
        self._groups[key] = group
        logger.debug(
            "Group selected",
            kind=group.kind.value,
            group_id=group.group_id,
            members=len(group.members),
        )
        self._recompute()
        return True

    def deselect_group(self, kind: GroupKind, group_id: str) -> bool:
        if self._groups.pop((kind, group_id), None) is None:
            return False
        logger.debug("Group deselected", kind=kind.value, group_id=group_id)
        self._recompute()
        return True

    def select_team_group(self, group: RecipientGroup) -> bool:
        if group.kind is not GroupKind.TEAM:
            raise ValueError(f"expected a team group, got {group.kind.value}")
        return self.select_group(group)

    def deselect_team_group(self, team_id: str) -> bool:
        return self.deselect_group(GroupKind.TEAM, team_id)

    def select_role_group(self, group: RecipientGroup) -> bool:
        if group.kind is not GroupKind.ROLE:
            raise ValueError(f"expected a role group, got {group.kind.value}")
        return self.select_group(group)

    def deselect_role_group(self, role_id: str) -> bool:
        return self.deselect_group(GroupKind.ROLE, role_id)

    def _add(self, contact: Contact) -> None:
        self._selected_ids.add(contact.id)
        self.cache.put(contact)

    def _recompute(self) -> None:
        self._state = self.aggregate.recompute(
            self._selected_ids,
            self._all_selected,
            search_query=self.search.last_query,
            last_selected_id=self._last_selected_id,
            groups=self.selected_groups,
        )

    # Search commands

    def set_search_query(self, text: str) -> None:
        """Update the search input; the search runs once typing pauses."""
        self._search_text = text
        if not text.strip():
            self.debouncer.cancel()
            self._clear_search()
            return
        self.debouncer.trigger(text)

    def search_now(self, text: str) -> Optional[asyncio.Task]:
        """Submit a search immediately, skipping the debounce delay."""
        self._search_text = text
        self.debouncer.cancel()
        if not text.strip():
            self._clear_search()
            return None
        return self._submit_search(text)

    def _submit_search(self, text: str) -> asyncio.Task:
        page = self.search.begin(text)
        self._forget_failure(RequestSource.SEARCH)
        self._recompute()
        return self._fetch_search(self.search.last_query, page)

    def _clear_search(self) -> None:
        if not self.search.is_active and not self.coordinator.in_flight(RequestSource.SEARCH):
            return
        self.coordinator.abort(RequestSource.SEARCH)
        self.search.clear()
        self._forget_failure(RequestSource.SEARCH)
        self._recompute()

        # The page size changed while searching; the plain page number is for the old size
        if self._plain_limit is not None and self._plain_limit != self._page_size:
            logger.debug("Reloading plain listing for new page size", page_size=self._page_size)
            self._load_plain(1)

    # Navigation commands

    def next_page(self) -> Optional[asyncio.Task]:
        window = self.window
        if window.loading or not window.has_next:
            logger.debug("Next page ignored", loading=window.loading, has_next=window.has_next)
            return None
        return self._navigate(window.page + 1)

    def prev_page(self) -> Optional[asyncio.Task]:
        window = self.window
        if window.loading or not window.has_prev or window.page <= 1:
            logger.debug("Previous page ignored", loading=window.loading, has_prev=window.has_prev)
            return None
        return self._navigate(window.page - 1)

    def _navigate(self, page: int) -> asyncio.Task:
        if self.search.is_active:
            return self._load_search(self.search.last_query, page, paginating=True)
        return self._load_plain(page, paginating=True)

    def set_page_size(self, page_size: int) -> Optional[asyncio.Task]:
        """
        Change the page size and reload the live source from page 1.

        During a search the plain listing is reloaded from page 1 once the
        search is cleared.
        """
        if page_size < 1:
            raise ValueError(f"page size must be >= 1, got {page_size}")
        if page_size == self._page_size:
            return None

        logger.info("Page size changed", previous=self._page_size, page_size=page_size)
        self._page_size = page_size
        if self.search.is_active:
            return self._load_search(self.search.last_query, 1)
        return self._load_plain(1)

    def refresh(self) -> asyncio.Task:
        """Re-fetch the live window's current page."""
        if self.search.is_active:
            return self._load_search(self.search.last_query, self.search.window.page)
        return self._load_plain(self.plain.window.page)

    def retry(self) -> Optional[asyncio.Task]:
        """Re-issue the request that last failed, if any."""
        if self._failed is None:
            return None
        source, reissue = self._failed
        logger.info("Retrying failed request", source=source.value)
        return reissue()

    # Fetching

    def _load_plain(self, page: int, paginating: bool = False) -> asyncio.Task:
        if paginating:
            self.plain.start_paginating(page)
        else:
            self.plain.start_loading()

        limit = self._page_size
        selection_config = self.settings.selection

        async def fetch() -> PageResult:
            return await self.directory.fetch_page(
                self.account_id,
                self.auth_token,
                page=page,
                limit=limit,
                include_roles=selection_config.include_roles,
                include_details=selection_config.include_details,
            )

        return self.coordinator.issue(
            RequestSource.PLAIN,
            fetch,
            on_commit=lambda result: self._commit_plain(result, page, limit),
            on_error=lambda error: self._fail(
                RequestSource.PLAIN,
                self.plain,
                error,
                lambda: self._load_plain(page, paginating),
            ),
        )

    def _fetch_search(self, query: str, page: int) -> asyncio.Task:
        limit = self._page_size

        async def fetch() -> PageResult:
            return await self.directory.search_page(
                self.account_id, self.auth_token, query, page=page, limit=limit
            )

        return self.coordinator.issue(
            RequestSource.SEARCH,
            fetch,
            on_commit=lambda result: self._commit(RequestSource.SEARCH, self.search, result, page),
            on_error=lambda error: self._fail(
                RequestSource.SEARCH,
                self.search,
                error,
                lambda: self._retry_search(query, page),
            ),
        )

    def _retry_search(self, query: str, page: int) -> asyncio.Task:
        if query != self.search.last_query:
            # The failed request was a query change that has since been rolled back
            return self._fetch_search(query, self.search.begin(query))
        return self._load_search(query, page)

    def _load_search(self, query: str, page: int, paginating: bool = False) -> asyncio.Task:
        if paginating:
            self.search.begin_paging(page)
        else:
            self.search.machine.start_loading()
        return self._fetch_search(query, page)

    def _commit_plain(self, result: PageResult, page: int, limit: int) -> None:
        self._plain_limit = limit
        self._commit(RequestSource.PLAIN, self.plain, result, page)

    def _commit(
        self,
        source: RequestSource,
        target: Union[PaginationMachine, SearchOverlay],
        result: PageResult,
        page: int,
    ) -> None:
        contacts = normalize_contacts(result.contacts)
        target.commit(contacts, result.has_next, result.has_prev, page=page)

        self._forget_failure(source)

        logger.info(
            "Contacts page loaded",
            source=source.value,
            page=page,
            count=len(contacts),
            has_next=result.has_next,
            has_prev=result.has_prev,
        )
        self._recompute()

    def _forget_failure(self, source: RequestSource) -> None:
        if self._failed is not None and self._failed[0] is source:
            self._failed = None
            self.last_error = None

    def _fail(
        self,
        source: RequestSource,
        target: Union[PaginationMachine, SearchOverlay],
        error: DirectoryServiceError,
        reissue: Callable[[], asyncio.Task],
    ) -> None:
        target.fail()
        self.last_error = error
        self._failed = (source, reissue)
        if source is RequestSource.SEARCH:
            self._recompute()
