"""Heuristic confidence scoring for backends that report none."""

from __future__ import annotations


class ConfidenceScorer:
    """Score extracted text in [0, 100] by alphanumeric density.

    A text longer than ``MIN_STRUCTURED_LENGTH`` that contains whitespace gets
    ``STRUCTURE_BONUS`` extra points.
    """

    MIN_STRUCTURED_LENGTH = 50
    STRUCTURE_BONUS = 10

    def score(self, text: str | None) -> int:
        if not text or not text.strip():
            return 0
        alnum = sum(1 for char in text if char.isalnum())
        score = min(100, alnum * 100 // len(text))
        if len(text) > self.MIN_STRUCTURED_LENGTH and any(char.isspace() for char in text):
            score = min(100, score + self.STRUCTURE_BONUS)
        return score
