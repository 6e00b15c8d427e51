"""Shared test helpers for Mender tests."""

from datetime import UTC, datetime, timedelta
from typing import Any

from mender.store import ResolutionPattern, SolutionPayload

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Settable clock for deterministic lastUsed and age checks."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def make_pattern(
    pattern_id: str = "p-1",
    *,
    problem_type: str = "network",
    signature: str = "connection timeout to database",
    success_count: int = 0,
    failure_count: int = 0,
    last_used: datetime = FIXED_NOW,
    average_resolution_time_ms: float = 0.0,
    data: Any = None,
) -> ResolutionPattern:
    """Test helper: build a pattern with sensible defaults."""
    return ResolutionPattern(
        id=pattern_id,
        problem_type=problem_type,
        problem_signature=signature,
        solution=SolutionPayload(data=data if data is not None else {"action": "retry"}),
        success_count=success_count,
        failure_count=failure_count,
        last_used=last_used,
        average_resolution_time_ms=average_resolution_time_ms,
    )
