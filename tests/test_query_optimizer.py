# tests/test_query_optimizer.py

"""Tests for QueryOptimizer."""

import unittest

from sourcing.filters.query_optimizer import QueryOptimizer


class TestQueryOptimizer(unittest.TestCase):
    """QueryOptimizer.optimize behaviour."""

    def test_drops_filler_words(self) -> None:
        self.assertEqual(
            QueryOptimizer.optimize("I need a good lamp for the bedroom"),
            "lamp bedroom",
        )

    def test_keeps_at_most_four_terms(self) -> None:
        self.assertEqual(
            QueryOptimizer.optimize("oak walnut teak pine maple"),
            "oak walnut teak pine",
        )

    def test_drops_single_characters(self) -> None:
        self.assertEqual(QueryOptimizer.optimize("x lamp"), "lamp")

    def test_lowercases(self) -> None:
        self.assertEqual(
            QueryOptimizer.optimize("Minimalist Furniture"),
            "minimalist furniture",
        )

    def test_all_filler_returns_original(self) -> None:
        self.assertEqual(QueryOptimizer.optimize("the best"), "the best")


if __name__ == "__main__":
    unittest.main()
