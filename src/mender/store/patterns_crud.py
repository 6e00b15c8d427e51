"""Pattern repository mixin for the pattern store.

Provides methods for creating, reading, updating and deleting patterns:
- save_pattern / load_pattern / load_all_patterns / delete_pattern
- update_pattern_success: count a success and fold in its resolution time
- update_pattern_failure: count a failure
- add_feedback: append a user feedback entry
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime

from mender.core.config import PatternStoreConfig
from mender.core.errors import PatternNotFoundError
from mender.core.logging import MenderLogger
from mender.store.models import FeedbackEntry, ResolutionPattern, StoreDocument


class PatternCrudMixin:
    """Mixin providing pattern CRUD and outcome recording.

    This mixin requires that the composed class provides:
    - _snapshot(): Fresh copy of the store document
    - _transaction(operation): Read-modify-write context yielding the document
    - _now(): Current time
    """

    config: PatternStoreConfig
    _logger: MenderLogger
    _now: Callable[[], datetime]
    _snapshot: Callable[[], StoreDocument]
    _transaction: Callable[[str], AbstractContextManager[StoreDocument]]

    async def save_pattern(self, pattern: ResolutionPattern) -> None:
        """Insert or replace a pattern, keyed by its id.

        The solution payload is stored as-is. Replacing an existing id keeps
        its position in storage order.
        """
        with self._transaction("save_pattern") as document:
            created = pattern.id not in document.patterns
            document.patterns[pattern.id] = pattern

        self._logger.debug(
            "pattern_saved",
            pattern_id=pattern.id,
            problem_type=pattern.problem_type,
            created=created,
        )

    async def load_pattern(self, pattern_id: str) -> ResolutionPattern | None:
        """Get a single pattern by id, or None if it does not exist."""
        return self._snapshot().patterns.get(pattern_id)

    async def load_all_patterns(self) -> list[ResolutionPattern]:
        """Return every pattern in storage order."""
        return list(self._snapshot().patterns.values())

    async def delete_pattern(self, pattern_id: str) -> bool:
        """Delete a pattern.

        Returns:
            True if the pattern existed, False otherwise. Nothing is written
            when the id is unknown.
        """
        if pattern_id not in self._snapshot().patterns:
            return False

        with self._transaction("delete_pattern") as document:
            existed = document.patterns.pop(pattern_id, None) is not None

        if existed:
            self._logger.info("pattern_deleted", pattern_id=pattern_id)
        return existed

    async def update_pattern_success(
        self,
        pattern_id: str,
        resolution_time_ms: float,
    ) -> ResolutionPattern:
        """Record a successful application of a pattern.

        With ``n`` the success count before the call, the average becomes
        ``(average * n + resolution_time_ms) / (n + 1)``. Confidence follows
        from the new counts and lastUsed is set to now.

        Args:
            pattern_id: Pattern that resolved the problem.
            resolution_time_ms: How long the resolution took.

        Returns:
            The updated pattern.

        Raises:
            PatternNotFoundError: If no pattern has this id.
            ValueError: If resolution_time_ms is negative.
        """
        if resolution_time_ms < 0:
            raise ValueError(f"resolution_time_ms must be >= 0, got {resolution_time_ms}")

        with self._transaction("update_pattern_success") as document:
            pattern = self._require_pattern(document, pattern_id)
            pattern.record_success(resolution_time_ms, self._now())

        self._logger.debug(
            "pattern_success_recorded",
            pattern_id=pattern_id,
            success_count=pattern.success_count,
            average_resolution_time_ms=round(pattern.average_resolution_time_ms, 2),
            confidence=round(pattern.confidence, 4),
        )
        return pattern

    async def update_pattern_failure(self, pattern_id: str) -> ResolutionPattern:
        """Record a failed application of a pattern.

        Returns:
            The updated pattern.

        Raises:
            PatternNotFoundError: If no pattern has this id.
        """
        with self._transaction("update_pattern_failure") as document:
            pattern = self._require_pattern(document, pattern_id)
            pattern.record_failure(self._now())

        self._logger.debug(
            "pattern_failure_recorded",
            pattern_id=pattern_id,
            failure_count=pattern.failure_count,
            confidence=round(pattern.confidence, 4),
        )
        return pattern

    async def add_feedback(
        self,
        pattern_id: str,
        feedback: FeedbackEntry,
    ) -> ResolutionPattern:
        """Append user feedback to a pattern. Does not change confidence.

        Raises:
            PatternNotFoundError: If no pattern has this id.
        """
        with self._transaction("add_feedback") as document:
            pattern = self._require_pattern(document, pattern_id)
            pattern.user_feedback.append(feedback)

        self._logger.debug(
            "pattern_feedback_added",
            pattern_id=pattern_id,
            rating=feedback.rating,
            feedback_entries=len(pattern.user_feedback),
        )
        return pattern

    def _require_pattern(self, document: StoreDocument, pattern_id: str) -> ResolutionPattern:
        pattern = document.patterns.get(pattern_id)
        if pattern is None:
            self._logger.warning("pattern_not_found", pattern_id=pattern_id)
            raise PatternNotFoundError(pattern_id)
        return pattern
