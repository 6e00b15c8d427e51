"""Pattern query mixin for the pattern store.

Provides the retrieval paths a self-healing caller uses before deriving a
solution from scratch:
- retrieve_patterns_by_rank: filter + sort by confidence, success rate,
  recency or usage
- find_similar_patterns / score_similar_patterns: lexical matching on the
  problem signature
- get_pattern_statistics: aggregate view, computed fresh per call
- get_feedback_score: normalized recent user rating of one pattern
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from mender.core.config import PatternStoreConfig
from mender.core.logging import MenderLogger
from mender.store.confidence import feedback_score
from mender.store.models import (
    PatternStatistics,
    ResolutionPattern,
    SortKey,
    StoreDocument,
)
from mender.store.ranking import compute_statistics, rank_patterns
from mender.store.similarity import score_patterns


class PatternQueryMixin:
    """Mixin providing read-only pattern queries.

    This mixin requires that the composed class provides:
    - _snapshot(): Fresh copy of the store document
    - _now(): Current time
    """

    config: PatternStoreConfig
    _logger: MenderLogger
    _now: Callable[[], datetime]
    _snapshot: Callable[[], StoreDocument]

    async def retrieve_patterns_by_rank(
        self,
        min_confidence: float = 0.0,
        sort_by: SortKey | str = SortKey.CONFIDENCE,
        limit: int | None = None,
        min_success_count: int = 0,
        max_age: timedelta | None = None,
    ) -> list[ResolutionPattern]:
        """Get patterns ranked for retrieval.

        Args:
            min_confidence: Keep patterns with confidence >= this value.
            sort_by: confidence, successRate, recentUse or totalUses.
            limit: Return at most this many patterns (the head of the ranking).
            min_success_count: Keep patterns with at least this many successes.
            max_age: Drop patterns not used within this window.

        Returns:
            Patterns sorted descending by ``sort_by``; ties keep storage order.
        """
        ranked = rank_patterns(
            list(self._snapshot().patterns.values()),
            now=self._now(),
            min_confidence=min_confidence,
            sort_by=sort_by,
            limit=limit,
            min_success_count=min_success_count,
            max_age=max_age,
        )
        self._logger.debug(
            "patterns_ranked",
            sort_by=SortKey(sort_by).value,
            min_confidence=min_confidence,
            returned=len(ranked),
        )
        return ranked

    async def score_similar_patterns(
        self,
        query: str,
        threshold: float | None = None,
    ) -> list[tuple[ResolutionPattern, float]]:
        """Like find_similar_patterns, but also return each Jaccard score."""
        if threshold is None:
            threshold = self.config.similarity_threshold
        scored = score_patterns(query, self._snapshot().patterns.values(), threshold)
        self._logger.debug(
            "similar_patterns_scored",
            threshold=threshold,
            matches=len(scored),
        )
        return scored

    async def find_similar_patterns(
        self,
        query: str,
        threshold: float | None = None,
    ) -> list[ResolutionPattern]:
        """Find patterns whose problem signature lexically resembles ``query``.

        Args:
            query: Free-text problem description.
            threshold: Minimum Jaccard score (inclusive). Defaults to the
                configured similarity_threshold.

        Returns:
            Matching patterns, most similar first.
        """
        return [pattern for pattern, _ in await self.score_similar_patterns(query, threshold)]

    async def get_pattern_statistics(self) -> PatternStatistics:
        """Aggregate statistics over the current repository contents."""
        return compute_statistics(
            list(self._snapshot().patterns.values()),
            recent_limit=self.config.recent_patterns_limit,
        )

    async def get_feedback_score(self, pattern_id: str) -> float | None:
        """Mean recent feedback rating in [0, 1].

        Returns:
            None when the pattern does not exist or has too little recent
            feedback inside the configured window.
        """
        pattern = self._snapshot().patterns.get(pattern_id)
        if pattern is None:
            return None
        return feedback_score(
            pattern.user_feedback,
            now=self._now(),
            window=timedelta(days=self.config.feedback_window_days),
        )
