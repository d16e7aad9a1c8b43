"""Recipient selection over a paginated, searchable contact directory."""

from .aggregate import SelectionAggregate
from .cache import CacheStats, SelectionCache
from .coordinator import CancellationToken, RequestCoordinator, RequestSource
from .debounce import CancellableTimer, Debouncer
from .pagination import PaginationMachine, transition
from .resolver import CacheSource, ContactSource, HybridResolver, ItemsSource
from .search import SearchOverlay
from .session import RecipientSelectionSession

__all__ = [
    "CacheSource",
    "CacheStats",
    "CancellableTimer",
    "CancellationToken",
    "ContactSource",
    "Debouncer",
    "HybridResolver",
    "ItemsSource",
    "PaginationMachine",
    "RecipientSelectionSession",
    "RequestCoordinator",
    "RequestSource",
    "SearchOverlay",
    "SelectionAggregate",
    "SelectionCache",
    "transition",
]
