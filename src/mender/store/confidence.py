"""Confidence calculation for resolution patterns.

Confidence is always derived from outcome counts and is never stored as an
independent source of truth:

- ``successes / (successes + failures)`` clamped to ``[0, 1]`` once any
  outcome has been recorded;
- ``NEUTRAL_CONFIDENCE`` (0.5) before the first outcome, so a brand-new
  pattern neither outranks proven ones nor falls below every filter.

User feedback is tracked separately through `feedback_score` and does not
feed into confidence.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from mender.utils.time import age_of

if TYPE_CHECKING:
    from mender.store.models import FeedbackEntry

NEUTRAL_CONFIDENCE = 0.5
"""Bootstrap confidence used while successCount == failureCount == 0."""

MAX_FEEDBACK_RATING = 5
MIN_FEEDBACK_ENTRIES = 3
DEFAULT_FEEDBACK_WINDOW = timedelta(days=30)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def compute_confidence(success_count: int, failure_count: int) -> float:
    """Derive confidence from accumulated outcomes."""
    total = success_count + failure_count
    if total <= 0:
        return NEUTRAL_CONFIDENCE
    return _clamp(success_count / total)


def compute_success_rate(success_count: int, failure_count: int) -> float:
    """Observed success rate; 0.0 when nothing has been attempted.

    Same ratio as `compute_confidence` once outcomes exist, but kept as a
    separate function so ranking by success rate can diverge from ranking by
    confidence (an untried pattern ranks last here instead of at the prior).
    """
    total = success_count + failure_count
    if total <= 0:
        return 0.0
    return _clamp(success_count / total)


def running_mean(current_mean: float, sample_count: int, sample: float) -> float:
    """Fold ``sample`` into a mean that currently covers ``sample_count`` samples."""
    return (current_mean * sample_count + sample) / (sample_count + 1)


def weighted_mean(mean_a: float, weight_a: int, mean_b: float, weight_b: int) -> float:
    """Combine two means by their sample counts.

    With no samples on either side there is nothing to weigh, so ``mean_a``
    is kept unchanged.
    """
    total = weight_a + weight_b
    if total <= 0:
        return mean_a
    return (mean_a * weight_a + mean_b * weight_b) / total


def feedback_score(
    feedback: Sequence[FeedbackEntry],
    now: datetime,
    window: timedelta = DEFAULT_FEEDBACK_WINDOW,
) -> float | None:
    """Mean recent rating normalized to ``[0, 1]``.

    Args:
        feedback: A pattern's feedback entries.
        now: Reference time for the window.
        window: Only entries younger than this count.

    Returns:
        The normalized mean rating, or None when fewer than
        MIN_FEEDBACK_ENTRIES entries fall inside the window.
    """
    ratings = [f.rating for f in feedback if age_of(f.timestamp, now) < window]
    if len(ratings) < MIN_FEEDBACK_ENTRIES:
        return None
    return _clamp(sum(ratings) / len(ratings) / MAX_FEEDBACK_RATING)
