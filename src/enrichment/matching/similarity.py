"""
Similarity Scorer

Normalized Levenshtein similarity between two names.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def _normalize(value: str) -> str:
    return value.strip().lower()


def edit_distance(a: str, b: str) -> int:
    """Unit-cost edit distance (insertion, deletion, substitution)."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Case-insensitive similarity in [0, 1].

    Both inputs are trimmed and lowercased. Empty input scores 0 and equal
    input scores 1; otherwise ``1 - distance / max(len(a), len(b))``.

    Example:
        >>> similarity("abc", "abd")
        0.6666666666666666
    """
    a = _normalize(a)
    b = _normalize(b)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    longest = max(len(a), len(b))
    return (longest - edit_distance(a, b)) / longest
