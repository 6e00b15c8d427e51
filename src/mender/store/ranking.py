"""Ranking and aggregate statistics over a pattern snapshot.

Pure functions: callers pass the repository snapshot and a reference time,
nothing here touches persistence.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from mender.store.models import PatternStatistics, ResolutionPattern, SortKey
from mender.utils.time import age_of

_SORT_KEYS: dict[SortKey, Callable[[ResolutionPattern], float | datetime]] = {
    SortKey.CONFIDENCE: lambda p: p.confidence,
    SortKey.SUCCESS_RATE: lambda p: p.success_rate,
    SortKey.RECENT_USE: lambda p: p.last_used,
    SortKey.TOTAL_USES: lambda p: p.total_uses,
}


def rank_patterns(
    patterns: Sequence[ResolutionPattern],
    *,
    now: datetime,
    min_confidence: float = 0.0,
    sort_by: SortKey | str = SortKey.CONFIDENCE,
    limit: int | None = None,
    min_success_count: int = 0,
    max_age: timedelta | None = None,
) -> list[ResolutionPattern]:
    """Filter and sort patterns for retrieval.

    Args:
        patterns: Snapshot in storage iteration order.
        now: Reference time for the ``max_age`` filter.
        min_confidence: Keep patterns with confidence >= this value.
        sort_by: Descending sort key.
        limit: Keep only the first ``limit`` results (must be >= 1).
        min_success_count: Keep patterns with at least this many successes.
        max_age: Drop patterns whose last use is older than this.

    Returns:
        Matching patterns, best first. Ties keep storage order: the sort is
        stable and no secondary key is applied.

    Raises:
        ValueError: On an unknown sort key or a limit below 1.
    """
    key = SortKey(sort_by)
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    selected = [
        p
        for p in patterns
        if p.confidence >= min_confidence
        and p.success_count >= min_success_count
        and (max_age is None or age_of(p.last_used, now) <= max_age)
    ]
    selected.sort(key=_SORT_KEYS[key], reverse=True)

    if limit is not None:
        selected = selected[:limit]
    return selected


def compute_statistics(
    patterns: Sequence[ResolutionPattern],
    recent_limit: int = 10,
) -> PatternStatistics:
    """Aggregate outcome counts and type distribution for a snapshot."""
    if not patterns:
        return PatternStatistics()

    most_successful = patterns[0]
    for pattern in patterns[1:]:
        if pattern.success_count > most_successful.success_count:
            most_successful = pattern

    recent = sorted(patterns, key=lambda p: p.last_used, reverse=True)[:recent_limit]

    return PatternStatistics(
        total_patterns=len(patterns),
        total_successes=sum(p.success_count for p in patterns),
        total_failures=sum(p.failure_count for p in patterns),
        average_confidence=sum(p.confidence for p in patterns) / len(patterns),
        most_successful_pattern=most_successful,
        recently_used_patterns=recent,
        patterns_by_type=dict(Counter(p.problem_type for p in patterns)),
    )
