"""Configuration models for Mender.

Pydantic v2 models for store and logging settings, loadable from YAML.

Example YAML:
    store:
      backend: json
      path: ~/.mender/patterns.json
      similarity_threshold: 0.5
    logging:
      level: DEBUG
      format: console
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from mender.core.errors import ConfigurationError

DEFAULT_STORE_PATH = Path.home() / ".mender" / "patterns.json"


class PatternStoreConfig(BaseModel):
    """Configuration for the resolution pattern store."""

    backend: Literal["json", "memory"] = Field(
        default="json",
        description="json persists to a single document; memory lives for the process lifetime",
    )
    path: Path = Field(
        default=DEFAULT_STORE_PATH,
        description="Backing document for the json backend (ignored by memory)",
    )
    similarity_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Default Jaccard threshold for find_similar_patterns",
    )
    recent_patterns_limit: int = Field(
        default=10,
        ge=0,
        description="How many recently used patterns statistics report",
    )
    feedback_window_days: int = Field(
        default=30,
        ge=1,
        description="Only feedback newer than this contributes to feedback_score",
    )
    advisory_lock: bool = Field(
        default=False,
        description="Hold an exclusive flock during each read-modify-write (POSIX only). "
        "Off by default: concurrent writers are last-writer-wins.",
    )

    @field_validator("path")
    @classmethod
    def _expand_path(cls, v: Path) -> Path:
        return v.expanduser()


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )
    max_file_size_mb: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Maximum log file size before rotation (MB)",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )
    include_timestamps: bool = Field(
        default=True,
        description="Include ISO8601 UTC timestamps in log entries",
    )
    include_context: bool = Field(
        default=True,
        description="Include the active store context (path, session) in log entries",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError(
                f"file_path is required when format='{self.format}'"
            )
        return self


class MenderConfig(BaseModel):
    """Top-level configuration owned by the process entry point."""

    store: PatternStoreConfig = Field(default_factory=PatternStoreConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> MenderConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            text = f.read()
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> MenderConfig:
        """Load configuration from a YAML string.

        Raises:
            ConfigurationError: If the YAML is malformed or fails validation.
        """
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config: {e}") from e
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Config validation failed: {e}") from e
