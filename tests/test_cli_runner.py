# tests/test_cli_runner.py

"""Tests for the headless CLI runner."""

import io
import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from sourcing.cli.runner import (
    cli_import_url,
    cli_search,
    resolve_sources,
    run_import_history,
)
from sourcing.config.settings import Settings
from sourcing.importer.url_importer import ImportOutcome
from sourcing.models.candidate import ImportCandidate
from sourcing.models.collection import Collection
from sourcing.models.import_record import ImportRecord
from sourcing.models.product import ExternalProduct
from sourcing.pricing.engine import MarkupKind, PricingRule
from sourcing.services.aggregator import AggregatedResult, SearchFilters
from sourcing.storage.import_history_db import ImportHistoryDB
from sourcing.workflow.review import ImportReviewWorkflow

RULE = PricingRule(MarkupKind.PERCENTAGE, 45, True)


def _product(pid: str, price: float) -> ExternalProduct:
    return ExternalProduct(
        id=pid,
        name=f"Vase {pid}",
        price=price,
        average_rating=4.2,
        source="aliexpress",
        product_url=f"https://www.aliexpress.com/item/{pid}.html",
    )


def _workflow(*products: ExternalProduct) -> ImportReviewWorkflow:
    """Workflow with mocked network and storage collaborators."""
    aggregator = MagicMock()
    aggregator.search_all_sources = AsyncMock(
        return_value=AggregatedResult(
            query="vase",
            products=list(products),
            total_count=len(products),
            sources=["aliexpress"],
        )
    )
    committer = MagicMock()
    committer.commit.side_effect = lambda items: [
        f"cat_{i}" for i in range(len(items))
    ]
    return ImportReviewWorkflow(
        aggregator,
        MagicMock(),
        committer,
        collections=[Collection(id="decor", title="Home Decor")],
        rule=RULE,
        default_collection="decor",
    )


class TestResolveSources(unittest.TestCase):
    """resolve_sources parsing."""

    def test_default(self) -> None:
        self.assertEqual(resolve_sources(None), Settings.DEFAULT_SOURCES)

    def test_explicit_list(self) -> None:
        self.assertEqual(
            resolve_sources("aliexpress_true, alibaba"),
            ["aliexpress_true", "alibaba"],
        )

    def test_unknown_source_exits(self) -> None:
        with self.assertRaises(SystemExit):
            resolve_sources("ebay")


class TestCliSearch(unittest.IsolatedAsyncioTestCase):
    """cli_search output and exit codes."""

    async def test_json_output(self) -> None:
        wf = _workflow(_product("ali_1", 10.0), _product("ali_2", 100.0))
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = await cli_search(
                wf, "vase", None, SearchFilters(), 1, "json"
            )
        self.assertEqual(code, 0)
        data = json.loads(out.getvalue())
        self.assertEqual([d["id"] for d in data], ["ali_1", "ali_2"])
        self.assertEqual(data[0]["suggested_price"], 14.99)
        self.assertEqual(data[1]["suggested_price"], 144.99)

    async def test_table_output(self) -> None:
        wf = _workflow(_product("ali_1", 10.0))
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = await cli_search(
                wf, "vase", "aliexpress", SearchFilters(), 1, "table"
            )
        self.assertEqual(code, 0)
        self.assertIn("Vase", out.getvalue())

    async def test_no_results(self) -> None:
        wf = _workflow()
        code = await cli_search(wf, "vase", None, SearchFilters(), 1, "json")
        self.assertEqual(code, 1)

    async def test_search_failure(self) -> None:
        wf = _workflow()
        wf.aggregator.search_all_sources.side_effect = RuntimeError("down")
        code = await cli_search(wf, "vase", None, SearchFilters(), 1, "json")
        self.assertEqual(code, 1)

    async def test_commit(self) -> None:
        wf = _workflow(_product("ali_1", 10.0), _product("ali_2", 100.0))
        with patch("sys.stdout", new_callable=io.StringIO):
            code = await cli_search(
                wf, "vase", None, SearchFilters(), 1, "json", commit=True
            )
        self.assertEqual(code, 0)
        committed = wf.committer.commit.call_args.args[0]
        self.assertEqual(len(committed), 2)
        self.assertEqual(wf.last_commit_ids, ["cat_0", "cat_1"])


class TestCliImportUrl(unittest.IsolatedAsyncioTestCase):
    """cli_import_url output and exit codes."""

    async def test_import_and_commit(self) -> None:
        wf = _workflow()
        cand = ImportCandidate.from_product(
            _product("url_1", 40.0), marked=True, custom_price=57.99
        )
        wf.importer.import_from_url.return_value = ImportOutcome(cand)
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = await cli_import_url(
                wf, "https://example.com/item/1", False, "json", commit=True
            )
        self.assertEqual(code, 0)
        data = json.loads(out.getvalue())
        self.assertEqual(data[0]["suggested_price"], 57.99)
        self.assertEqual(wf.last_commit_ids, ["cat_0"])

    async def test_import_failure(self) -> None:
        wf = _workflow()
        wf.importer.import_from_url.side_effect = ValueError("bad page")
        code = await cli_import_url(wf, "https://x", False, "json")
        self.assertEqual(code, 1)


class TestRunImportHistory(unittest.TestCase):
    """run_import_history rendering."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = ImportHistoryDB(Path(self.tmp_dir) / "imports.db")

    def tearDown(self) -> None:
        self.db.close()

    def test_empty_history(self) -> None:
        self.assertEqual(run_import_history(db=self.db), 0)

    def test_history_table(self) -> None:
        self.db.record_imports(
            [
                ImportRecord(
                    source_id="ali_1",
                    catalog_id="cat_1",
                    original_name="Vase",
                    imported_name="Freya Vase",
                    original_price=10.0,
                    imported_price=14.99,
                    markup=45,
                    markup_kind="percentage",
                    collection="decor",
                    ai_enhanced=True,
                    imported_at=datetime(2026, 3, 1, 9, 30),
                )
            ]
        )
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = run_import_history(db=self.db)
        self.assertEqual(code, 0)
        self.assertIn("Freya Vase", out.getvalue())


if __name__ == "__main__":
    unittest.main()
