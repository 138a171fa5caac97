"""Edit-distance helpers used to tell a real correction from a rephrasing."""

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(a: str, b: str) -> int:
    """Character-level edit distance (insert, delete, substitute)."""
    return Levenshtein.distance(a, b)


def normalized_similarity(a: str, b: str) -> float:
    """1 - distance / max(len). Two empty strings are identical (1.0)."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)
