"""Pytest fixtures for Mender tests."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from mender.core.logging import clear_context
from mender.store import InMemoryPatternStore, JsonPatternStore
from tests.helpers import FakeClock


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    structlog.reset_defaults()
    clear_context()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    clear_context()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Location of the backing document; not created up front."""
    return tmp_path / "state" / "patterns.json"


@pytest.fixture
def json_store(store_path: Path, clock: FakeClock) -> JsonPatternStore:
    return JsonPatternStore(store_path, clock=clock)


@pytest.fixture(params=["memory", "json"])
def store(
    request: pytest.FixtureRequest,
    store_path: Path,
    clock: FakeClock,
) -> InMemoryPatternStore | JsonPatternStore:
    """Run a test against every backend."""
    if request.param == "memory":
        return InMemoryPatternStore(clock=clock)
    return JsonPatternStore(store_path, clock=clock)
