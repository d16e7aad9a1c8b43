"""
Bounded cache of selected contacts.

Keeps snapshots of the contacts a user has actively selected so they remain
resolvable after they scroll off the loaded page or drop out of search
results. Evicting an entry never deselects the contact.
"""

import time
from typing import Any, Callable, Dict, List, Optional

import structlog

from leaguemail.core.models import Contact, SelectionCacheEntry

logger = structlog.get_logger(__name__)

DEFAULT_CAPACITY = 100


class CacheStats:
    """Track cache performance metrics."""

    def __init__(self):
        """Initialise counters for cache statistics."""
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Export stats as dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class SelectionCache:
    """
    Capacity-bounded map from contact id to its selection snapshot.

    When a new id would push the size past ``capacity`` the entry with the
    oldest ``selected_at`` is evicted first; ties go to the entry stored first.
    Snapshots are never refreshed automatically.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Callable[[], float] = time.time):
        """
        Initialize cache.

        Args:
            capacity: Maximum number of entries
            clock: Source of ``selected_at`` timestamps
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._entries: Dict[str, SelectionCacheEntry] = {}
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, contact_id: object) -> bool:
        return contact_id in self._entries

    def put(self, contact: Contact) -> SelectionCacheEntry:
        """
        Store a snapshot of a newly selected contact.

        Args:
            contact: Contact being selected

        Returns:
            The stored entry
        """
        # Re-selecting moves the entry to the back of the eviction order
        self._entries.pop(contact.id, None)

        if len(self._entries) >= self.capacity:
            self._evict_oldest()

        entry = SelectionCacheEntry(contact=contact, selected_at=self._clock())
        self._entries[contact.id] = entry

        logger.debug("Selection cached", contact_id=contact.id, size=len(self._entries))
        return entry

    def get(self, contact_id: str) -> Optional[Contact]:
        entry = self._entries.get(contact_id)
        if entry is None:
            self.stats.misses += 1
            return None

        self.stats.hits += 1
        return entry.contact

    def get_entry(self, contact_id: str) -> Optional[SelectionCacheEntry]:
        return self._entries.get(contact_id)

    def remove(self, contact_id: str) -> bool:
        """Drop a snapshot; returns whether one was present."""
        return self._entries.pop(contact_id, None) is not None

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        if count:
            logger.debug("Selection cache cleared", entries=count)

    def contacts(self) -> List[Contact]:
        """Cached contacts, oldest selection first."""
        ordered = sorted(self._entries.values(), key=lambda e: e.selected_at)
        return [entry.contact for entry in ordered]

    def _evict_oldest(self) -> None:
        """Evict the entry with the smallest selected_at."""
        if not self._entries:
            return

        # min() keeps the first of equal timestamps, i.e. the earliest stored
        oldest = min(self._entries.values(), key=lambda e: e.selected_at)
        del self._entries[oldest.contact.id]
        self.stats.evictions += 1

        logger.debug(
            "Selection cache eviction",
            contact_id=oldest.contact.id,
            selected_at=oldest.selected_at,
            capacity=self.capacity,
        )
