"""Data models for the resolution pattern store.

Every model serializes with camelCase aliases so the persisted JSON document
carries the field names callers see in other tooling (``successCount``,
``lastUsed``, ...). Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from mender.store.confidence import (
    compute_confidence,
    compute_success_rate,
    running_mean,
    weighted_mean,
)
from mender.utils.time import ensure_utc, utc_now

STORE_SCHEMA_VERSION = 1
"""Version of the persisted StoreDocument layout."""


def _generate_id() -> str:
    return uuid.uuid4().hex


def _dedupe(values: list[str]) -> list[str]:
    """Drop repeated entries, keeping first-seen order."""
    return list(dict.fromkeys(values))


class _StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportStrategy(str, Enum):
    """How import_patterns treats an incoming pattern that is already known.

    A pattern is already known when its id exists or its signature is a
    near-duplicate of an existing one.
    """

    MERGE = "merge"
    SKIP = "skip"
    REPLACE = "replace"


class SortKey(str, Enum):
    """Ranking keys accepted by retrieve_patterns_by_rank."""

    CONFIDENCE = "confidence"
    SUCCESS_RATE = "successRate"
    RECENT_USE = "recentUse"
    TOTAL_USES = "totalUses"


class SolutionPayload(_StoreModel):
    """Caller-owned solution, stored as an opaque JSON value.

    The store never inspects ``data``. ``schema_version`` lets callers evolve
    their own solution shape and deserialize older entries accordingly.
    """

    schema_version: int = Field(default=1, ge=1)
    data: JsonValue = None


class FeedbackEntry(_StoreModel):
    """One piece of user feedback about applying a pattern."""

    timestamp: datetime = Field(default_factory=utc_now)
    user_id: str | None = None
    rating: int = Field(ge=1, le=5, description="1 = useless, 5 = solved it")
    successful: bool
    comments: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ResolutionPattern(_StoreModel):
    """A remembered problem -> solution association with outcome statistics."""

    id: str = Field(default_factory=_generate_id, min_length=1)
    problem_type: str
    problem_signature: str
    solution: SolutionPayload
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    average_resolution_time_ms: float = Field(default=0.0, ge=0.0)
    last_used: datetime = Field(default_factory=utc_now)
    user_feedback: list[FeedbackEntry] = Field(default_factory=list)

    @field_validator("last_used")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def confidence(self) -> float:
        """Derived trust score in [0, 1]; see mender.store.confidence."""
        return compute_confidence(self.success_count, self.failure_count)

    @property
    def success_rate(self) -> float:
        return compute_success_rate(self.success_count, self.failure_count)

    @property
    def total_uses(self) -> int:
        return self.success_count + self.failure_count

    def record_success(self, resolution_time_ms: float, now: datetime) -> None:
        """Count a successful application and fold its duration into the mean."""
        n = self.success_count
        self.average_resolution_time_ms = running_mean(
            self.average_resolution_time_ms, n, resolution_time_ms
        )
        self.success_count = n + 1
        self.last_used = ensure_utc(now)

    def record_failure(self, now: datetime) -> None:
        """Count a failed application."""
        self.failure_count += 1
        self.last_used = ensure_utc(now)

    def absorb(self, other: ResolutionPattern) -> None:
        """Fold another store's statistics for the same problem into this one.

        Counts are summed, resolution times are averaged weighted by each
        side's success count, feedback lists are concatenated and lastUsed
        becomes the later of the two. Id, signature and solution stay ours.
        """
        self.average_resolution_time_ms = weighted_mean(
            self.average_resolution_time_ms,
            self.success_count,
            other.average_resolution_time_ms,
            other.success_count,
        )
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        self.user_feedback = [*self.user_feedback, *other.user_feedback]
        self.last_used = max(self.last_used, other.last_used)


class CommonIssue(_StoreModel):
    """Signature-keyed occurrence tally, independent of resolution patterns."""

    signature: str = Field(min_length=1)
    occurrences: int = Field(default=0, ge=0)
    solutions: list[str] = Field(default_factory=list)
    contexts: list[str] = Field(default_factory=list)
    first_seen: datetime = Field(default_factory=utc_now)
    last_seen: datetime = Field(default_factory=utc_now)

    @field_validator("solutions", "contexts")
    @classmethod
    def _unique(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    @field_validator("first_seen", "last_seen")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @classmethod
    def first_sighting(cls, signature: str, context: str, now: datetime) -> CommonIssue:
        return cls(
            signature=signature,
            occurrences=1,
            contexts=[context],
            first_seen=now,
            last_seen=now,
        )

    def record_occurrence(self, context: str, now: datetime) -> None:
        self.occurrences += 1
        if context not in self.contexts:
            self.contexts.append(context)
        self.last_seen = ensure_utc(now)

    def add_solution(self, summary: str) -> bool:
        """Add a solution summary. Returns False if it was already known."""
        if summary in self.solutions:
            return False
        self.solutions.append(summary)
        return True

    def absorb(self, other: CommonIssue) -> None:
        """Combine occurrence tallies of the same issue seen elsewhere."""
        self.occurrences += other.occurrences
        self.solutions = _dedupe([*self.solutions, *other.solutions])
        self.contexts = _dedupe([*self.contexts, *other.contexts])
        self.first_seen = min(self.first_seen, other.first_seen)
        self.last_seen = max(self.last_seen, other.last_seen)


class StoreDocument(_StoreModel):
    """The single persisted document behind a store path."""

    schema_version: int = STORE_SCHEMA_VERSION
    updated_at: datetime | None = None
    patterns: dict[str, ResolutionPattern] = Field(default_factory=dict)
    common_issues: dict[str, CommonIssue] = Field(default_factory=dict)


class ExportDocument(_StoreModel):
    """Portable snapshot written by export_patterns."""

    schema_version: int = STORE_SCHEMA_VERSION
    exported_at: datetime = Field(default_factory=utc_now)
    patterns: list[ResolutionPattern] = Field(default_factory=list)
    common_issues: list[CommonIssue] = Field(default_factory=list)


class PatternStatistics(_StoreModel):
    """Aggregate view over the repository, computed fresh per call."""

    total_patterns: int = 0
    total_successes: int = 0
    total_failures: int = 0
    average_confidence: float = 0.0
    most_successful_pattern: ResolutionPattern | None = None
    recently_used_patterns: list[ResolutionPattern] = Field(default_factory=list)
    patterns_by_type: dict[str, int] = Field(default_factory=dict)


class ImportResult(_StoreModel):
    """Outcome of import_patterns, counted per incoming pattern."""

    imported: int = 0
    merged: int = 0
    replaced: int = 0
    skipped: int = 0

    @property
    def written(self) -> int:
        """Patterns that changed the store."""
        return self.imported + self.merged + self.replaced
