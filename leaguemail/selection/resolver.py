"""
Hybrid contact resolution across the loaded page, search results and the
selection cache.
"""

from typing import Callable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from leaguemail.core.models import Contact
from leaguemail.selection.cache import SelectionCache


@runtime_checkable
class ContactSource(Protocol):
    """Anything that can look up a contact by id."""

    name: str

    def try_resolve(self, contact_id: str) -> Optional[Contact]:
        ...


class ItemsSource:
    """
    Resolves against a list of contacts obtained on demand.

    ``items`` is called on every lookup so the source always sees the current
    window; ``enabled`` lets a source switch itself off (e.g. inactive search).
    """

    def __init__(
        self,
        name: str,
        items: Callable[[], Sequence[Contact]],
        enabled: Optional[Callable[[], bool]] = None,
    ):
        self.name = name
        self._items = items
        self._enabled = enabled

    def try_resolve(self, contact_id: str) -> Optional[Contact]:
        if self._enabled is not None and not self._enabled():
            return None
        for contact in self._items():
            if contact.id == contact_id:
                return contact
        return None


class CacheSource:
    """Resolves against the selection cache."""

    def __init__(self, cache: SelectionCache, name: str = "selection_cache"):
        self.name = name
        self._cache = cache

    def try_resolve(self, contact_id: str) -> Optional[Contact]:
        return self._cache.get(contact_id)


class HybridResolver:
    """First-match-wins composition of prioritized contact sources."""

    def __init__(self, sources: Sequence[ContactSource]):
        self._sources: List[ContactSource] = list(sources)

    @property
    def sources(self) -> List[ContactSource]:
        return list(self._sources)

    def add_source(self, source: ContactSource, index: Optional[int] = None) -> None:
        if index is None:
            self._sources.append(source)
        else:
            self._sources.insert(index, source)

    def resolve(self, contact_id: str) -> Optional[Contact]:
        contact, _ = self.resolve_with_source(contact_id)
        return contact

    def resolve_with_source(self, contact_id: str) -> Tuple[Optional[Contact], Optional[str]]:
        """Return ``(contact, source_name)``, or ``(None, None)`` when unresolved."""
        for source in self._sources:
            contact = source.try_resolve(contact_id)
            if contact is not None:
                return contact, source.name
        return None, None
