"""In-memory pattern store for testing.

Provides a store that keeps its document in memory without filesystem I/O.
Useful for unit tests that need a real PatternStore implementation.
"""

from mender.core.config import PatternStoreConfig
from mender.store.base import Clock
from mender.store.models import StoreDocument
from mender.store.repository import PatternStore
from mender.utils.time import utc_now

MEMORY_LOCATION = ":memory:"


class InMemoryPatternStore(PatternStore):
    """In-memory pattern store.

    Reads and writes deep-copy the document so callers never share mutable
    state with the store, matching the JSON backend's behavior.
    """

    def __init__(
        self,
        config: PatternStoreConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._document = StoreDocument()
        super().__init__(config=config, clock=clock)

    @property
    def location(self) -> str:
        return MEMORY_LOCATION

    def _read_document(self) -> StoreDocument:
        return self._document.model_copy(deep=True)

    def _write_document(self, document: StoreDocument) -> None:
        self._document = document.model_copy(deep=True)
