"""Structured logging infrastructure for Mender.

Provides structured logging using structlog with store-specific context such
as the backing path, a session id and the operation in flight. Supports
console and JSON output, plus a rotating log file.

Example usage:
    from mender.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("store.json")

    # Log with auto-context
    logger.info("pattern_saved", pattern_id="p-1")

    # Correlate everything a CLI invocation does against one store
    ctx = StoreContext(store_path="~/.mender/patterns.json")
    with with_context(ctx):
        logger.info("store_opened")  # Automatically includes store_path, session_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names whose values must never reach a log sink
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "auth",
    "bearer",
    "authorization",
})


@dataclass(frozen=True)
class StoreContext:
    """Immutable context for correlating log entries of one store session.

    Attributes:
        store_path: Backing document path, or ``":memory:"`` for the
            in-memory backend.
        session_id: Unique id per process-level store session.
        operation: Repository operation currently running (e.g. "prune").
    """

    store_path: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str | None = None

    def with_operation(self, operation: str) -> StoreContext:
        """Return a copy of this context scoped to ``operation``."""
        return replace(self, operation=operation)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging (None values dropped)."""
        result: dict[str, Any] = {
            "store_path": self.store_path,
            "session_id": self.session_id,
        }
        if self.operation is not None:
            result["operation"] = self.operation
        return result


_current_context: ContextVar[StoreContext | None] = ContextVar(
    "mender_context", default=None
)


def get_current_context() -> StoreContext | None:
    """Get the current StoreContext if set."""
    return _current_context.get()


def set_context(ctx: StoreContext) -> None:
    """Set the current StoreContext.

    Generally prefer using `with_context()` for automatic cleanup.
    """
    _current_context.set(ctx)


def clear_context() -> None:
    """Clear the current StoreContext."""
    _current_context.set(None)


@contextmanager
def with_context(ctx: StoreContext) -> Iterator[StoreContext]:
    """Context manager that sets StoreContext for the duration of a block.

    Args:
        ctx: The StoreContext to use for the block.

    Yields:
        The StoreContext that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


REDACTED = "[REDACTED]"


def is_sensitive_key(key: str) -> bool:
    """True when a field name looks like it holds a credential."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)


def _sanitize_value(key: str, value: Any) -> Any:
    return REDACTED if is_sensitive_key(key) else value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Redact sensitive fields. Nested mappings are checked one level deep."""
    return {
        key: (
            {k: _sanitize_value(k, v) for k, v in value.items()}
            if isinstance(value, dict)
            else _sanitize_value(key, value)
        )
        for key, value in event_dict.items()
    }


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Merge the active StoreContext; explicitly logged keys win."""
    ctx = get_current_context()
    if ctx is None:
        return event_dict
    return {**ctx.to_dict(), **event_dict}


class MenderLogger:
    """Component-scoped logger that resolves structlog lazily.

    Instances are cheap and immutable: `bind` and `unbind` return new
    loggers. Module-level loggers created at import time still honor a
    later `configure_logging()` because the structlog logger is looked up
    on every call.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _derive(self, context: dict[str, Any]) -> MenderLogger:
        derived = MenderLogger(self._component)
        derived._context = context
        return derived

    def bind(self, **context: Any) -> MenderLogger:
        return self._derive({**self._context, **context})

    def unbind(self, *keys: str) -> MenderLogger:
        return self._derive({k: v for k, v in self._context.items() if k not in keys})

    def _emit(self, method: str, event: str, kw: dict[str, Any]) -> None:
        logger = structlog.get_logger().bind(**self._context)
        getattr(logger, method)(event, **kw)

    def debug(self, event: str, **kw: Any) -> None:
        self._emit("debug", event, kw)

    def info(self, event: str, **kw: Any) -> None:
        self._emit("info", event, kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._emit("warning", event, kw)

    def error(self, event: str, **kw: Any) -> None:
        self._emit("error", event, kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._emit("exception", event, kw)


LogFormat = Literal["json", "console", "both"]


def _shared_processors(include_timestamps: bool, include_context: bool) -> list[Processor]:
    """Processors that run once per event, before any handler renders it."""
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ])
    return processors


def _foreign_pre_chain(include_timestamps: bool) -> list[Processor]:
    """Processors applied to records from plain stdlib loggers (e.g. asyncio)."""
    chain: list[Processor] = [structlog.stdlib.add_log_level, structlog.stdlib.add_logger_name]
    if include_timestamps:
        chain.append(_add_timestamp)
    return chain


def json_formatter(include_timestamps: bool = True) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering every record as one JSON object per line."""
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=_foreign_pre_chain(include_timestamps),
    )


def console_formatter(include_timestamps: bool = True) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering human-readable, colored lines."""
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        foreign_pre_chain=_foreign_pre_chain(include_timestamps),
    )


def _build_handlers(
    format: LogFormat,  # noqa: A002
    file_path: Path | None,
    max_file_size_mb: int,
    backup_count: int,
    include_timestamps: bool,
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(console_formatter(include_timestamps))
        handlers.append(console_handler)

    if format in ("json", "both"):
        json_handler: logging.Handler
        if file_path:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        else:
            json_handler = logging.StreamHandler(sys.stdout)
        json_handler.setFormatter(json_formatter(include_timestamps))
        handlers.append(json_handler)

    return handlers


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure Mender structured logging.

    Call once from the process entry point, before the store is opened.
    Each handler renders the same event with its own formatter: console
    output is human-readable, file and stdout JSON output is one object
    per line.

    Args:
        level: Minimum log level to capture.
        format: "json" for structured output (to file_path, else stdout),
            "console" for human-readable stderr, "both" for console to
            stderr plus JSON lines in a rotating file.
        file_path: Log file path. Required if format="both".
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to add ISO8601 timestamps.
        include_context: Whether to merge the active StoreContext.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers = _build_handlers(
        format, file_path, max_file_size_mb, backup_count, include_timestamps
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    # cache_logger_on_first_use=False so module-level loggers pick up
    # configuration applied after import.
    structlog.configure(
        processors=[
            *_shared_processors(include_timestamps, include_context),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> MenderLogger:
    """Get a Mender logger for a component (e.g. "store.json")."""
    return MenderLogger(component, **initial_context)


__all__ = [
    "MenderLogger",
    "REDACTED",
    "SENSITIVE_PATTERNS",
    "StoreContext",
    "clear_context",
    "configure_logging",
    "console_formatter",
    "get_current_context",
    "get_logger",
    "is_sensitive_key",
    "json_formatter",
    "set_context",
    "with_context",
]
