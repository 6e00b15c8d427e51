"""Core configuration, errors and logging."""

from mender.core.config import LogConfig, MenderConfig, PatternStoreConfig
from mender.core.errors import (
    ConfigurationError,
    IssueNotFoundError,
    MenderError,
    PatternNotFoundError,
    PatternStoreError,
    StorageCorruptedError,
    StoreClosedError,
)
from mender.core.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "IssueNotFoundError",
    "LogConfig",
    "MenderConfig",
    "MenderError",
    "PatternNotFoundError",
    "PatternStoreConfig",
    "PatternStoreError",
    "StorageCorruptedError",
    "StoreClosedError",
    "configure_logging",
    "get_logger",
]
