"""Maintenance mixin for the pattern store.

Provides methods for keeping the store healthy and portable:
- prune_old_patterns: age-based eviction
- export_patterns: write a filtered, optionally anonymized snapshot
- import_patterns: merge, skip or replace known patterns from a snapshot
"""

import json
from collections.abc import Callable, Collection
from contextlib import AbstractContextManager
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from mender.core.errors import StorageCorruptedError
from mender.core.logging import MenderLogger
from mender.store.anonymize import anonymize_text, redact_payload
from mender.store.models import (
    ExportDocument,
    ImportResult,
    ImportStrategy,
    ResolutionPattern,
    StoreDocument,
)
from mender.store.similarity import score_patterns
from mender.utils.files import atomic_write_json
from mender.utils.time import age_of


def _stale_ids(document: StoreDocument, max_age: timedelta, now: datetime) -> list[str]:
    return [
        pattern_id
        for pattern_id, pattern in document.patterns.items()
        if age_of(pattern.last_used, now) > max_age
    ]


DUPLICATE_SIGNATURE_SIMILARITY = 0.9
"""Imported signatures scoring above this are treated as the same problem."""


def _find_known(document: StoreDocument, pattern: ResolutionPattern) -> ResolutionPattern | None:
    existing = document.patterns.get(pattern.id)
    if existing is not None:
        return existing
    candidates = score_patterns(
        pattern.problem_signature,
        document.patterns.values(),
        DUPLICATE_SIGNATURE_SIMILARITY,
    )
    for candidate, score in candidates:
        if score > DUPLICATE_SIGNATURE_SIMILARITY:
            return candidate
    return None


def _anonymized(pattern: ResolutionPattern) -> ResolutionPattern:
    scrubbed = pattern.model_copy(deep=True)
    scrubbed.problem_signature = anonymize_text(scrubbed.problem_signature)
    scrubbed.solution.data = redact_payload(scrubbed.solution.data)
    for entry in scrubbed.user_feedback:
        if entry.comments:
            entry.comments = anonymize_text(entry.comments)
        entry.context = redact_payload(entry.context)
    return scrubbed


class MaintenanceMixin:
    """Mixin providing pruning and export/import.

    This mixin requires that the composed class provides:
    - _snapshot(): Fresh copy of the store document
    - _transaction(operation): Read-modify-write context yielding the document
    - _now(): Current time
    """

    _logger: MenderLogger
    _now: Callable[[], datetime]
    _snapshot: Callable[[], StoreDocument]
    _transaction: Callable[[str], AbstractContextManager[StoreDocument]]

    async def prune_old_patterns(self, max_age: timedelta) -> int:
        """Remove every pattern whose last use is older than ``max_age``.

        Recency alone decides: a pattern with perfect confidence is still
        evicted once it goes unused for longer than ``max_age``. Common
        issues are not affected.

        Args:
            max_age: Patterns with ``now - last_used > max_age`` are removed.

        Returns:
            Number of patterns removed. Nothing is written when it is 0.

        Raises:
            ValueError: If max_age is negative.
        """
        if max_age < timedelta(0):
            raise ValueError(f"max_age must not be negative, got {max_age}")

        now = self._now()
        if not _stale_ids(self._snapshot(), max_age, now):
            return 0

        with self._transaction("prune_old_patterns") as document:
            stale = _stale_ids(document, max_age, now)
            for pattern_id in stale:
                del document.patterns[pattern_id]

        self._logger.info(
            "patterns_pruned",
            removed=len(stale),
            max_age_seconds=max_age.total_seconds(),
        )
        return len(stale)

    async def export_patterns(
        self,
        path: Path,
        anonymize: bool = False,
        *,
        min_confidence: float | None = None,
        min_success_count: int | None = None,
        problem_types: Collection[str] | None = None,
    ) -> int:
        """Write patterns and all common issues to a portable JSON file.

        Args:
            path: Destination file, replaced atomically.
            anonymize: Scrub signatures and feedback comments, and redact
                sensitive keys inside solution payloads.
            min_confidence: Only export patterns with confidence >= this.
            min_success_count: Only export patterns with at least this many
                successes.
            problem_types: Only export these problem types. Empty or None
                exports every type.

        Returns:
            Number of patterns exported.
        """
        document = self._snapshot()
        patterns = [
            p
            for p in document.patterns.values()
            if (min_confidence is None or p.confidence >= min_confidence)
            and (min_success_count is None or p.success_count >= min_success_count)
            and (not problem_types or p.problem_type in problem_types)
        ]
        if anonymize:
            patterns = [_anonymized(p) for p in patterns]

        export = ExportDocument(
            exported_at=self._now(),
            patterns=patterns,
            common_issues=list(document.common_issues.values()),
        )
        atomic_write_json(Path(path), export.model_dump(mode="json", by_alias=True))

        self._logger.info(
            "patterns_exported",
            path=str(path),
            patterns=len(patterns),
            skipped=len(document.patterns) - len(patterns),
            anonymized=anonymize,
        )
        return len(patterns)

    async def import_patterns(
        self,
        path: Path,
        strategy: ImportStrategy | str = ImportStrategy.MERGE,
    ) -> ImportResult:
        """Fold an export file into this store with a single write.

        An incoming pattern is already known when its id exists here or its
        signature has Jaccard similarity above DUPLICATE_SIGNATURE_SIMILARITY
        with an existing pattern (the closest one wins). Known patterns are
        handled per ``strategy``:

        - merge: sum the counts into the existing pattern, weight the
          average resolution times by success count, append the feedback
        - skip: keep the existing pattern untouched
        - replace: drop the existing pattern and store the incoming one

        Unknown patterns are always added. Common issues follow the same
        strategy keyed by signature (merge sums occurrences and unions
        solutions and contexts).

        Args:
            path: File produced by export_patterns.
            strategy: merge, skip or replace.

        Returns:
            Per-pattern counts of what happened.

        Raises:
            ValueError: On an unknown strategy.
            FileNotFoundError: If ``path`` does not exist.
            StorageCorruptedError: If the file is not a valid export.
        """
        strategy = ImportStrategy(strategy)
        path = Path(path)
        try:
            export = ExportDocument.model_validate(
                json.loads(path.read_text(encoding="utf-8"))
            )
        except json.JSONDecodeError as e:
            raise StorageCorruptedError(path, "json_decode", str(e)) from e
        except ValidationError as e:
            raise StorageCorruptedError(path, "validation", str(e)) from e

        result = ImportResult()
        with self._transaction("import_patterns") as document:
            for pattern in export.patterns:
                known = _find_known(document, pattern)
                if known is None:
                    document.patterns[pattern.id] = pattern
                    result.imported += 1
                elif strategy is ImportStrategy.MERGE:
                    known.absorb(pattern)
                    result.merged += 1
                elif strategy is ImportStrategy.REPLACE:
                    del document.patterns[known.id]
                    document.patterns[pattern.id] = pattern
                    result.replaced += 1
                else:
                    result.skipped += 1

            for issue in export.common_issues:
                existing = document.common_issues.get(issue.signature)
                if existing is None or strategy is ImportStrategy.REPLACE:
                    document.common_issues[issue.signature] = issue
                elif strategy is ImportStrategy.MERGE:
                    existing.absorb(issue)

        self._logger.info(
            "patterns_imported",
            path=str(path),
            strategy=strategy.value,
            imported=result.imported,
            merged=result.merged,
            replaced=result.replaced,
            skipped=result.skipped,
        )
        return result
