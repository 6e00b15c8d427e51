"""Base class for pattern stores with document and lifecycle management.

This module provides the foundational `PatternStoreBase` class that handles:
- Reading and writing the whole StoreDocument through a backend
- Read-modify-write transactions for every mutating operation
- The open/close lifecycle of a store handle

Mixins inherit from this base to add domain-specific operations. Backends
(in-memory, JSON file) only implement `_read_document`, `_write_document`
and, optionally, `_exclusive`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from types import TracebackType
from typing import Self

from mender.core.config import PatternStoreConfig
from mender.core.errors import StoreClosedError
from mender.core.logging import StoreContext, get_logger, with_context
from mender.store.models import StoreDocument
from mender.utils.time import utc_now

_logger = get_logger("store")

Clock = Callable[[], datetime]


class PatternStoreBase(ABC):
    """Document-oriented pattern store base class.

    Every public operation is one unit of work: read operations take a fresh
    snapshot of the document, mutating operations re-read the document,
    apply the change and write the whole document back. Nothing is cached
    between calls, so a new handle on the same backing path observes every
    earlier write.

    A handle is meant to be constructed once by the process entry point and
    passed to every consumer. Operations work without an explicit `open()`
    (reads are lazy); after `close()` they raise StoreClosedError.

    Attributes:
        config: Store configuration.
    """

    def __init__(
        self,
        config: PatternStoreConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the store base.

        Args:
            config: Store configuration. Defaults to PatternStoreConfig().
            clock: Source of "now" for lastUsed/lastSeen and age checks.
        """
        self.config = config or PatternStoreConfig()
        self._clock = clock
        self._closed = False
        self._context = StoreContext(store_path=self.location)
        self._logger = _logger.bind(backend=type(self).__name__)

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable identifier of the backing storage."""
        ...

    @abstractmethod
    def _read_document(self) -> StoreDocument:
        """Return a private copy of the current document.

        Raises:
            StorageCorruptedError: If the backing content cannot be parsed.
        """
        ...

    @abstractmethod
    def _write_document(self, document: StoreDocument) -> None:
        """Replace the stored document with ``document`` (all-or-nothing)."""
        ...

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Serialize read-modify-write cycles. No-op unless a backend overrides it."""
        yield

    @property
    def closed(self) -> bool:
        return self._closed

    def _now(self) -> datetime:
        return self._clock()

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Pattern store at {self.location} is closed")

    def _snapshot(self) -> StoreDocument:
        """Read-only view of the document for query operations."""
        self._ensure_open()
        return self._read_document()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[StoreDocument]:
        """Read-modify-write the document.

        The document is written back only when the block exits normally;
        an exception raised inside the block leaves storage untouched.

        Args:
            operation: Operation name bound into log context.

        Yields:
            A private, mutable copy of the current document.
        """
        self._ensure_open()
        with with_context(self._context.with_operation(operation)), self._exclusive():
            document = self._read_document()
            yield document
            document.updated_at = self._now()
            self._write_document(document)
            self._logger.debug(
                "store_document_written",
                patterns=len(document.patterns),
                common_issues=len(document.common_issues),
            )

    async def open(self) -> None:
        """Open the store, reading the backing document once.

        Raises:
            StoreClosedError: If the handle was already closed.
            StorageCorruptedError: If the backing document is unreadable.
        """
        self._ensure_open()
        with with_context(self._context.with_operation("open")):
            document = self._read_document()
            self._logger.info(
                "store_opened",
                patterns=len(document.patterns),
                common_issues=len(document.common_issues),
            )

    async def close(self) -> None:
        """End this handle's lifecycle. Idempotent."""
        if self._closed:
            return
        self._closed = True
        with with_context(self._context.with_operation("close")):
            self._logger.info("store_closed")

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
