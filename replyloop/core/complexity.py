"""Heuristic query complexity score used for backend routing."""

import re

_NON_WORD = re.compile(r"\W")
_SENTENCE_END = re.compile(r"[.!?。！？]")


class ComplexityEstimator:
    """Scores a query between 0 and 1 from three clamped sub-scores.

    - length: len / 200, at most 0.5
    - non-word characters (whitespace, punctuation, symbols): count / 10, at most 0.2
    - sentences: (terminators + 1) / 5, at most 0.3

    `\\W` is Unicode-aware, so CJK ideographs count as word characters.
    A pure function of the input string.
    """

    LENGTH_CAP = 0.5
    DENSITY_CAP = 0.2
    SENTENCE_CAP = 0.3

    def length_score(self, query: str) -> float:
        return min(len(query) / 200, self.LENGTH_CAP)

    def density_score(self, query: str) -> float:
        return min(len(_NON_WORD.findall(query)) / 10, self.DENSITY_CAP)

    def sentence_score(self, query: str) -> float:
        return min((len(_SENTENCE_END.findall(query)) + 1) / 5, self.SENTENCE_CAP)

    def score(self, query: str) -> float:
        total = self.length_score(query) + self.density_score(query) + self.sentence_score(query)
        return min(total, 1.0)
