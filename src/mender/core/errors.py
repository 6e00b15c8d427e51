"""Exception hierarchy for Mender.

All Mender exceptions inherit from MenderError, enabling callers to catch
broad (MenderError) or narrow (e.g., StorageCorruptedError). Lookup misses
are not errors: ``load_pattern`` returns None and ``delete_pattern`` returns
False. Exceptions are reserved for conditions the caller must act on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal


class MenderError(Exception):
    """Base exception for all Mender errors."""


class ConfigurationError(MenderError):
    """Raised when a configuration file cannot be parsed or validated."""


class PatternStoreError(MenderError):
    """Base exception for pattern store failures."""


class StorageCorruptedError(PatternStoreError):
    """Raised when the backing document exists but cannot be read back.

    The store never falls back to an empty state in this case, since that
    would discard every accumulated statistic on the next write.

    Attributes:
        path: The backing document that failed to load.
        error_type: ``json_decode`` for unparseable content, ``validation``
            for well-formed JSON that does not match the document schema.
    """

    def __init__(
        self,
        path: Path,
        error_type: Literal["json_decode", "validation"],
        detail: str,
    ) -> None:
        self.path = path
        self.error_type = error_type
        self.detail = detail
        super().__init__(f"Pattern store at {path} is corrupted ({error_type}): {detail}")


class PatternNotFoundError(PatternStoreError):
    """Raised when an outcome or feedback update targets an unknown pattern id."""

    def __init__(self, pattern_id: str) -> None:
        self.pattern_id = pattern_id
        super().__init__(f"No resolution pattern with id {pattern_id!r}")


class IssueNotFoundError(PatternStoreError):
    """Raised when a common-issue update requires an existing signature."""

    def __init__(self, signature: str) -> None:
        self.signature = signature
        super().__init__(f"No common issue with signature {signature!r}")


class StoreClosedError(PatternStoreError):
    """Raised when an operation is attempted on a closed store handle."""


__all__ = [
    "ConfigurationError",
    "IssueNotFoundError",
    "MenderError",
    "PatternNotFoundError",
    "PatternStoreError",
    "StorageCorruptedError",
    "StoreClosedError",
]
