"""Tests for media_conversion.scoring."""

from __future__ import annotations

import unittest

from media_conversion.scoring import ConfidenceScorer


class TestConfidenceScorer(unittest.TestCase):
    def setUp(self) -> None:
        self.scorer = ConfidenceScorer()

    def test_empty_scores_zero(self) -> None:
        self.assertEqual(self.scorer.score(""), 0)
        self.assertEqual(self.scorer.score(None), 0)
        self.assertEqual(self.scorer.score("   \n\t"), 0)

    def test_punctuation_only_scores_zero(self) -> None:
        self.assertEqual(self.scorer.score("!!!---???"), 0)

    def test_all_alphanumeric_short_text(self) -> None:
        self.assertEqual(self.scorer.score("abc123"), 100)

    def test_density_is_floored(self) -> None:
        # 2 of 3 characters are alphanumeric.
        self.assertEqual(self.scorer.score("ab!"), 66)

    def test_structure_bonus_for_long_text_with_whitespace(self) -> None:
        text = "word " * 12  # 60 chars, 48 alphanumeric
        self.assertEqual(self.scorer.score(text), 90)

    def test_no_bonus_without_whitespace(self) -> None:
        text = "ab!" * 20
        self.assertEqual(self.scorer.score(text), 66)

    def test_bonus_is_capped(self) -> None:
        text = "a" * 60 + " "
        self.assertEqual(self.scorer.score(text), 100)

    def test_bounds(self) -> None:
        for text in ("x", "é", "日本語", "@@@ @@@", "a b " * 40, "\x00\x01\x02"):
            with self.subTest(text=text):
                score = self.scorer.score(text)
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, 100)

    def test_more_alphanumerics_never_score_lower(self) -> None:
        noisy = "!!!! !!!! !!!!"
        cleaner = "ab!! ab!! ab!!"
        clean = "abcd abcd abcd"
        self.assertLessEqual(self.scorer.score(noisy), self.scorer.score(cleaner))
        self.assertLessEqual(self.scorer.score(cleaner), self.scorer.score(clean))

    def test_deterministic(self) -> None:
        text = "Invoice 2024-01 total $120.00"
        self.assertEqual(self.scorer.score(text), self.scorer.score(text))


if __name__ == "__main__":
    unittest.main()
