# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from sourcing.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants and the marketplace registry."""

    def test_min_request_interval_is_positive_float(self) -> None:
        """MIN_REQUEST_INTERVAL must be a positive number."""
        self.assertIsInstance(Settings.MIN_REQUEST_INTERVAL, float)
        self.assertGreater(Settings.MIN_REQUEST_INTERVAL, 0)

    def test_request_timeout_is_positive_int(self) -> None:
        """REQUEST_TIMEOUT must be a positive integer."""
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_cache_ttls(self) -> None:
        """Search results live 15 min, details 4 h, aggregates 10 min."""
        self.assertEqual(Settings.SEARCH_CACHE_TTL, 900)
        self.assertEqual(Settings.DETAIL_CACHE_TTL, 14400)
        self.assertEqual(Settings.AGGREGATED_CACHE_TTL, 600)
        self.assertEqual(Settings.HOT_PRODUCTS_CACHE_TTL, 3600)

    def test_available_sources_has_three(self) -> None:
        """Registry must contain exactly 3 marketplaces."""
        self.assertEqual(len(Settings.AVAILABLE_SOURCES), 3)

    def test_each_source_has_required_keys(self) -> None:
        """Every source must have id, label, host and client keys."""
        for src in Settings.AVAILABLE_SOURCES:
            with self.subTest(src=src.get("id", "?")):
                for key in ("id", "label", "host", "client"):
                    self.assertIn(key, src)

    def test_source_ids_are_unique(self) -> None:
        """No two marketplaces share an id."""
        ids = [s["id"] for s in Settings.AVAILABLE_SOURCES]
        self.assertEqual(len(ids), len(set(ids)))

    def test_default_sources_are_registered(self) -> None:
        """Default marketplaces must exist in the registry."""
        ids = {s["id"] for s in Settings.AVAILABLE_SOURCES}
        for source_id in Settings.DEFAULT_SOURCES:
            self.assertIn(source_id, ids)

    def test_paths_are_paths(self) -> None:
        """File locations are pathlib.Path instances."""
        for path in (
            Settings.BASE_DIR,
            Settings.COLLECTIONS_PATH,
            Settings.CATALOG_PATH,
            Settings.IMPORT_HISTORY_DB_PATH,
            Settings.LOGS_DIR,
        ):
            self.assertIsInstance(path, Path)

    def test_collections_file_exists(self) -> None:
        """The bundled collection taxonomy ships with the package."""
        self.assertTrue(Settings.COLLECTIONS_PATH.exists())

    def test_size_ladder(self) -> None:
        """Clothing fallback sizes run S through XXL."""
        self.assertEqual(
            Settings.SIZE_LADDER, ["S", "M", "L", "XL", "XXL"]
        )


if __name__ == "__main__":
    unittest.main()
