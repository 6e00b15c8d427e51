"""Lexical similarity between problem descriptions.

Signatures are compared as bags of lowercase whitespace-separated tokens
using the Jaccard coefficient. No embeddings or external models are
involved, so paraphrases that share no words will not match.
"""

from __future__ import annotations

from collections.abc import Iterable

from mender.store.models import ResolutionPattern


def tokenize(text: str) -> frozenset[str]:
    """Lowercase, split on whitespace, collapse duplicates."""
    return frozenset(text.lower().split())


def jaccard_similarity(left: frozenset[str], right: frozenset[str]) -> float:
    """``|left & right| / |left | right|``; 0.0 when both sets are empty."""
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def signature_similarity(query: str, signature: str) -> float:
    return jaccard_similarity(tokenize(query), tokenize(signature))


def score_patterns(
    query: str,
    patterns: Iterable[ResolutionPattern],
    threshold: float,
) -> list[tuple[ResolutionPattern, float]]:
    """Score ``patterns`` against ``query`` and keep those at or above ``threshold``.

    Results are ordered by descending score; equal scores keep their input
    order.
    """
    query_tokens = tokenize(query)
    scored: list[tuple[ResolutionPattern, float]] = []
    for pattern in patterns:
        score = jaccard_similarity(query_tokens, tokenize(pattern.problem_signature))
        if score >= threshold:
            scored.append((pattern, score))
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored
