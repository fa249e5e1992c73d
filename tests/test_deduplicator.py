# tests/test_deduplicator.py

"""Tests for ProductDeduplicator."""

import unittest

from sourcing.filters.deduplicator import ProductDeduplicator
from sourcing.models.product import ExternalProduct


def _p(pid: str, name: str = "Lamp") -> ExternalProduct:
    return ExternalProduct(id=pid, name=name, price=10.0)


class TestProductDeduplicator(unittest.TestCase):
    """ProductDeduplicator.deduplicate behaviour."""

    def test_no_duplicates(self) -> None:
        kept, removed = ProductDeduplicator.deduplicate([_p("a"), _p("b")])
        self.assertEqual(len(kept), 2)
        self.assertEqual(removed, 0)

    def test_first_occurrence_wins(self) -> None:
        kept, removed = ProductDeduplicator.deduplicate(
            [_p("a", "First"), _p("b"), _p("a", "Second")]
        )
        self.assertEqual([p.id for p in kept], ["a", "b"])
        self.assertEqual(kept[0].name, "First")
        self.assertEqual(removed, 1)

    def test_same_name_different_ids_kept(self) -> None:
        """Identity is the marketplace-qualified id, not the name."""
        kept, _ = ProductDeduplicator.deduplicate(
            [_p("ali_1", "Lamp"), _p("ab_1", "Lamp")]
        )
        self.assertEqual(len(kept), 2)

    def test_empty(self) -> None:
        self.assertEqual(ProductDeduplicator.deduplicate([]), ([], 0))


if __name__ == "__main__":
    unittest.main()
