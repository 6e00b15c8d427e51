"""JSON file-based pattern store.

The whole repository lives in one JSON document. Every mutation rewrites
it atomically (temp file + fsync + rename), so a crash mid-write leaves
either the old or the new document on disk, never a torn one.
"""

import fcntl
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from mender.core.config import PatternStoreConfig
from mender.core.errors import StorageCorruptedError
from mender.store.base import Clock
from mender.store.models import StoreDocument
from mender.store.repository import PatternStore
from mender.utils.files import atomic_write_json
from mender.utils.time import utc_now


class JsonPatternStore(PatternStore):
    """JSON file-based pattern storage.

    A missing file is an empty store; the file and its parent directory are
    created on the first write. Content that cannot be parsed is reported
    with StorageCorruptedError instead of being silently replaced.
    """

    def __init__(
        self,
        path: Path | None = None,
        config: PatternStoreConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize JSON backend.

        Args:
            path: Store file. Overrides ``config.path`` when given.
            config: Store configuration.
            clock: Source of "now".
        """
        config = config or PatternStoreConfig()
        if path is not None:
            config = config.model_copy(update={"path": Path(path).expanduser()})
        self.path = config.path
        super().__init__(config=config, clock=clock)

    @property
    def location(self) -> str:
        return str(self.path)

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def _read_document(self) -> StoreDocument:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return StoreDocument()

        try:
            return StoreDocument.model_validate(json.loads(raw))
        except json.JSONDecodeError as e:
            self._logger.warning("store_corrupted", error_type="json_decode", error=str(e))
            raise StorageCorruptedError(self.path, "json_decode", str(e)) from e
        except ValidationError as e:
            self._logger.warning(
                "store_corrupted",
                error_type="validation",
                error_count=e.error_count(),
            )
            raise StorageCorruptedError(self.path, "validation", str(e)) from e

    def _write_document(self, document: StoreDocument) -> None:
        try:
            atomic_write_json(self.path, document.model_dump(mode="json", by_alias=True))
        except OSError as e:
            self._logger.warning("store_write_failed", error=str(e))
            raise

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold an advisory flock on the sibling lock file when enabled."""
        if not self.config.advisory_lock:
            yield
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)
