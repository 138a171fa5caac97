"""Coarse reply confidence from reply length and source count."""

from collections.abc import Sized

BASE_CONFIDENCE = 0.7
MAX_CONFIDENCE = 0.95


def score_confidence(reply: str, sources: Sized) -> float:
    """0.7 + 0.1 per 1000 reply characters + 0.1 per 10 sources, capped at 0.95.

    Not a calibrated probability; it only rewards longer, better-sourced replies.
    """
    confidence = BASE_CONFIDENCE + (len(reply) / 1000) * 0.1 + (len(sources) / 10) * 0.1
    return min(MAX_CONFIDENCE, confidence)
