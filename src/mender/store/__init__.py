"""Resolution pattern store with modular mixins.

This package provides the PatternStore class, composed from mixins that
each handle one domain of functionality:

- PatternCrudMixin: Pattern CRUD, success/failure recording, user feedback
- PatternQueryMixin: Ranked retrieval, similarity search, statistics
- CommonIssueMixin: Signature-keyed occurrence tracking
- MaintenanceMixin: Age-based pruning, export and import

The base class (PatternStoreBase) provides:
- Whole-document read-modify-write transactions
- The open/close lifecycle of a store handle

Usage:
    from mender.store import open_store

    async with open_store(config.store) as store:
        similar = await store.find_similar_patterns("timeout connecting to db")

PatternStoreBase is listed LAST in the MRO so mixins can rely on
self._transaction(), self._snapshot() and self._logger provided by it.
"""

from mender.core.config import PatternStoreConfig
from mender.store.base import Clock, PatternStoreBase
from mender.store.issues import CommonIssueMixin
from mender.store.json_backend import JsonPatternStore
from mender.store.maintenance import MaintenanceMixin
from mender.store.memory import InMemoryPatternStore
from mender.store.models import (
    STORE_SCHEMA_VERSION,
    CommonIssue,
    ExportDocument,
    FeedbackEntry,
    ImportResult,
    ImportStrategy,
    PatternStatistics,
    ResolutionPattern,
    SolutionPayload,
    SortKey,
    StoreDocument,
)
from mender.store.patterns_crud import PatternCrudMixin
from mender.store.patterns_query import PatternQueryMixin
from mender.store.repository import PatternStore
from mender.utils.time import utc_now


def open_store(
    config: PatternStoreConfig | None = None,
    clock: Clock = utc_now,
) -> PatternStore:
    """Create a store handle for the configured backend.

    The handle is not opened yet; use it as an async context manager or
    call ``await store.open()`` to validate the backing document up front.
    """
    config = config or PatternStoreConfig()
    if config.backend == "memory":
        return InMemoryPatternStore(config=config, clock=clock)
    return JsonPatternStore(config=config, clock=clock)


__all__ = [
    # Composed store and backends
    "PatternStore",
    "PatternStoreBase",
    "InMemoryPatternStore",
    "JsonPatternStore",
    "open_store",
    # Mixins
    "PatternCrudMixin",
    "PatternQueryMixin",
    "CommonIssueMixin",
    "MaintenanceMixin",
    # Models
    "STORE_SCHEMA_VERSION",
    "CommonIssue",
    "ExportDocument",
    "FeedbackEntry",
    "ImportResult",
    "ImportStrategy",
    "PatternStatistics",
    "ResolutionPattern",
    "SolutionPayload",
    "SortKey",
    "StoreDocument",
]
