"""Tests for lexical signature similarity."""

import pytest

from mender.store.similarity import (
    jaccard_similarity,
    score_patterns,
    signature_similarity,
    tokenize,
)
from tests.helpers import make_pattern


class TestTokenize:
    def test_lowercases_and_splits_on_whitespace(self):
        assert tokenize("Connection  TIMEOUT\tnetwork") == {"connection", "timeout", "network"}

    def test_duplicates_collapse(self):
        assert tokenize("retry retry Retry") == {"retry"}

    def test_empty_string(self):
        assert tokenize("   ") == frozenset()


class TestJaccardSimilarity:
    def test_identical_sets(self):
        assert jaccard_similarity(frozenset({"a", "b"}), frozenset({"a", "b"})) == 1.0

    def test_disjoint_sets(self):
        assert jaccard_similarity(frozenset({"a"}), frozenset({"b"})) == 0.0

    def test_both_empty_is_zero(self):
        assert jaccard_similarity(frozenset(), frozenset()) == 0.0

    def test_partial_overlap(self):
        assert signature_similarity(
            "connection timeout network",
            "connection timeout error network",
        ) == pytest.approx(0.75)


class TestScorePatterns:
    """Tests for threshold filtering and ordering."""

    def test_related_signature_included_unrelated_excluded(self):
        related = make_pattern("net", signature="connection timeout error network")
        unrelated = make_pattern("auth", signature="invalid authentication credentials rejected")

        scored = score_patterns("connection timeout network", [unrelated, related], 0.4)

        assert [p.id for p, _ in scored] == ["net"]

    def test_threshold_is_inclusive(self):
        pattern = make_pattern(signature="a b c d")
        scored = score_patterns("a b", [pattern], 0.5)
        assert len(scored) == 1
        assert scored[0][1] == pytest.approx(0.5)

    def test_sorted_by_descending_score(self):
        weak = make_pattern("weak", signature="disk full on node")
        strong = make_pattern("strong", signature="disk full")

        scored = score_patterns("disk full", [weak, strong], 0.1)

        assert [p.id for p, _ in scored] == ["strong", "weak"]

    def test_equal_scores_keep_input_order(self):
        first = make_pattern("first", signature="out of memory")
        second = make_pattern("second", signature="out of memory")

        scored = score_patterns("out of memory", [first, second], 0.5)

        assert [p.id for p, _ in scored] == ["first", "second"]
