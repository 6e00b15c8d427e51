"""Mender: a resolution pattern knowledge store for self-healing tooling."""

from mender.core.config import MenderConfig, PatternStoreConfig
from mender.core.errors import MenderError
from mender.store import (
    CommonIssue,
    FeedbackEntry,
    PatternStore,
    ResolutionPattern,
    SolutionPayload,
    SortKey,
    open_store,
)

__version__ = "0.1.0"

__all__ = [
    "CommonIssue",
    "FeedbackEntry",
    "MenderConfig",
    "MenderError",
    "PatternStore",
    "PatternStoreConfig",
    "ResolutionPattern",
    "SolutionPayload",
    "SortKey",
    "open_store",
    "__version__",
]
