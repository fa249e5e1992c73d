# tests/test_review_workflow.py

"""Tests for the search/review/commit state machine."""

import asyncio
import sqlite3
import threading
import unittest
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from sourcing.importer.url_importer import ImportOutcome
from sourcing.models.candidate import ImportCandidate
from sourcing.models.collection import Collection, Subcategory
from sourcing.models.product import CatalogProduct, ExternalProduct
from sourcing.pricing.engine import (
    MarkupKind,
    PricingRule,
    compute_sale_price,
)
from sourcing.services.aggregator import AggregatedResult, SearchFilters
from sourcing.services.ai_text import EnhancementResult
from sourcing.workflow.review import (
    ImportReviewWorkflow,
    Stage,
    WorkflowError,
)

RULE = PricingRule(MarkupKind.PERCENTAGE, 45, True)
COLLECTIONS = [
    Collection(
        id="furniture",
        title="Furniture",
        subcategories=[Subcategory(id="dining-chairs", title="Dining Chairs")],
    ),
    Collection(id="decor", title="Home Decor"),
]


def _product(pid: str, price: float = 100.0, rating: float = 4.5) -> ExternalProduct:
    return ExternalProduct(
        id=pid,
        name=f"Chair {pid}",
        price=price,
        average_rating=rating,
        images=[f"https://img/{pid}/{i}.jpg" for i in range(3)],
    )


def _result(*products: ExternalProduct, errors: list[str] | None = None) -> AggregatedResult:
    return AggregatedResult(
        query="chair",
        products=list(products),
        total_count=len(products),
        current_page=1,
        total_pages=1,
        sources=["aliexpress"],
        errors=errors or [],
    )


class _WorkflowTestCase(unittest.IsolatedAsyncioTestCase):
    """Workflow wired to mocked collaborators."""

    def setUp(self) -> None:
        self.aggregator = MagicMock()
        self.aggregator.search_all_sources = AsyncMock(
            return_value=_result(_product("ali_1"), _product("ali_2", 20.0))
        )
        self.importer = MagicMock()
        self.committer = MagicMock()
        self.committer.commit.side_effect = lambda products: [
            f"cat_{i}" for i in range(len(products))
        ]
        self.history = MagicMock()
        self.ai = MagicMock()
        self.wf = ImportReviewWorkflow(
            self.aggregator,
            self.importer,
            self.committer,
            ai=self.ai,
            history=self.history,
            collections=COLLECTIONS,
            rule=RULE,
            default_collection="furniture",
        )

    async def _review_two(self) -> None:
        await self.wf.search("chair")
        self.wf.select_all()
        self.wf.start_review()


class TestSearch(_WorkflowTestCase):
    """Search stage."""

    async def test_candidates_are_priced(self) -> None:
        await self.wf.search("chair")
        self.assertEqual([c.id for c in self.wf.candidates], ["ali_1", "ali_2"])
        for cand in self.wf.candidates:
            self.assertEqual(
                cand.custom_price, compute_sale_price(cand.cost_price, RULE)
            )
            self.assertEqual(cand.target_collection, "furniture")
            self.assertFalse(cand.marked)

    async def test_min_rating_results_are_priced(self) -> None:
        self.aggregator.search_all_sources.return_value = _result(
            _product("ali_1", rating=4.0), _product("ali_3", rating=4.9)
        )
        filters = SearchFilters(min_rating=4.0)
        await self.wf.search("minimalist furniture", filters=filters)
        self.aggregator.search_all_sources.assert_awaited_once_with(
            "minimalist furniture", page=1, filters=filters, sources=None
        )
        self.assertTrue(
            all(c.average_rating >= 4.0 for c in self.wf.candidates)
        )
        self.assertTrue(all(c.custom_price == 144.99 for c in self.wf.candidates))

    async def test_partial_errors_become_notices(self) -> None:
        self.aggregator.search_all_sources.return_value = _result(
            _product("ali_1"), errors=["Alibaba: rate limit exceeded"]
        )
        await self.wf.search("chair")
        self.assertEqual(self.wf.notices, ["Alibaba: rate limit exceeded"])

    async def test_failure_clears_list_and_reraises(self) -> None:
        await self.wf.search("chair")
        self.aggregator.search_all_sources.side_effect = RuntimeError("down")
        with self.assertRaises(RuntimeError):
            await self.wf.search("lamp")
        self.assertEqual(self.wf.candidates, [])
        self.assertEqual(self.wf.last_error, "down")

    async def test_stale_search_is_dropped(self) -> None:
        gate = asyncio.Event()

        async def _search(query: str, **_: Any) -> AggregatedResult:
            if query == "slow":
                await gate.wait()
                return _result(_product("slow_1"))
            return _result(_product("fast_1"))

        self.aggregator.search_all_sources = AsyncMock(side_effect=_search)
        slow = asyncio.create_task(self.wf.search("slow"))
        await asyncio.sleep(0)
        await self.wf.search("fast")
        gate.set()
        self.assertIsNone(await slow)
        self.assertEqual([c.id for c in self.wf.candidates], ["fast_1"])
        self.assertEqual(self.wf.last_query, "fast")

    async def test_search_finishing_during_review_is_dropped(self) -> None:
        await self.wf.search("chair")
        self.wf.select_all()
        gate = asyncio.Event()

        async def _slow(query: str, **_: Any) -> AggregatedResult:
            await gate.wait()
            return _result(_product("ali_9"))

        self.aggregator.search_all_sources = AsyncMock(side_effect=_slow)
        pending = asyncio.create_task(self.wf.search("lamp"))
        await asyncio.sleep(0)
        self.wf.start_review()
        gate.set()
        self.assertIsNone(await pending)
        self.assertIs(self.wf.stage, Stage.REVIEW)
        self.assertEqual([c.id for c in self.wf.candidates], ["ali_1", "ali_2"])
        self.assertEqual(self.wf.current().id, "ali_1")
        self.assertEqual(self.wf.next().id, "ali_2")
        self.assertEqual(self.wf.last_query, "chair")

    async def test_new_rule_applies_to_new_results(self) -> None:
        self.wf.set_pricing_rule(PricingRule(MarkupKind.FIXED, 5, False))
        await self.wf.search("chair")
        self.assertEqual(self.wf.get("ali_1").custom_price, 105.0)

    async def test_search_not_allowed_in_review(self) -> None:
        await self._review_two()
        with self.assertRaises(WorkflowError):
            await self.wf.search("lamp")

    async def test_toggle_mark_and_select_all(self) -> None:
        await self.wf.search("chair")
        self.assertTrue(self.wf.toggle_mark("ali_2"))
        self.assertEqual([c.id for c in self.wf.marked()], ["ali_2"])
        self.wf.select_all(False)
        self.assertEqual(self.wf.marked(), [])

    async def test_unknown_candidate(self) -> None:
        with self.assertRaises(WorkflowError):
            self.wf.get("nope")


class TestImportUrl(_WorkflowTestCase):
    """URL import from the search stage."""

    async def test_inserted_at_top_with_warnings(self) -> None:
        await self.wf.search("chair")
        cand = ImportCandidate.from_product(
            _product("url_abc", 40.0), marked=True
        )
        self.importer.import_from_url.return_value = ImportOutcome(
            candidate=cand, warnings=["AI returned a generic name; kept the original"]
        )
        self.wf.set_default_target("furniture", "dining-chairs")
        outcome = await self.wf.import_url("https://example.com/item/123", enhance=True)
        self.assertIs(outcome.candidate, cand)
        self.assertEqual(self.wf.candidates[0].id, "url_abc")
        self.assertEqual(cand.target_subcategory, "dining-chairs")
        self.assertEqual(len(self.wf.notices), 1)
        self.importer.import_from_url.assert_called_once_with(
            "https://example.com/item/123", True, "furniture", RULE
        )

    async def test_same_listing_imported_twice_is_listed_once(self) -> None:
        first = ImportCandidate.from_product(_product("ali_555", 40.0), marked=True)
        second = ImportCandidate.from_product(_product("ali_555", 40.0), marked=True)
        self.importer.import_from_url.side_effect = [
            ImportOutcome(candidate=first),
            ImportOutcome(candidate=second),
        ]
        url = "https://www.aliexpress.com/item/555.html"
        await self.wf.import_url(url)
        await self.wf.import_url(url)
        self.assertEqual(len(self.wf.candidates), 1)
        self.assertIs(self.wf.candidates[0], second)
        self.assertIn("already listed", self.wf.notices[-1])

        self.wf.start_review()
        self.assertEqual(self.wf.review_position, (1, 1))
        self.wf.set_name(self.wf.current().id, "Edited Stool")
        await self.wf.confirm_import()
        products: list[CatalogProduct] = self.committer.commit.call_args.args[0]
        self.assertEqual([p.name for p in products], ["Edited Stool"])

    async def test_import_of_listing_already_in_results_moves_it_up(self) -> None:
        await self.wf.search("chair")
        fresh = ImportCandidate.from_product(_product("ali_2", 20.0), marked=True)
        self.importer.import_from_url.return_value = ImportOutcome(candidate=fresh)
        await self.wf.import_url("https://www.aliexpress.com/item/2.html")
        self.assertEqual([c.id for c in self.wf.candidates], ["ali_2", "ali_1"])
        self.assertIs(self.wf.get("ali_2"), fresh)

    async def test_import_finishing_during_review_is_discarded(self) -> None:
        await self.wf.search("chair")
        self.wf.toggle_mark("ali_1")
        release = threading.Event()

        def _slow_import(*_: Any) -> ImportOutcome:
            release.wait(timeout=5)
            return ImportOutcome(
                candidate=ImportCandidate.from_product(
                    _product("url_new", 40.0), marked=True
                )
            )

        self.importer.import_from_url.side_effect = _slow_import
        pending = asyncio.create_task(
            self.wf.import_url("https://example.com/p/new")
        )
        await asyncio.sleep(0)
        self.wf.start_review()
        release.set()
        with self.assertRaises(WorkflowError):
            await pending
        self.assertEqual([c.id for c in self.wf.candidates], ["ali_1", "ali_2"])
        self.assertEqual(self.wf.review_position, (1, 1))

        await self.wf.confirm_import()
        products: list[CatalogProduct] = self.committer.commit.call_args.args[0]
        self.assertEqual([p.name for p in products], ["Chair ali_1"])

    async def test_failure_keeps_list(self) -> None:
        await self.wf.search("chair")
        self.importer.import_from_url.side_effect = ValueError("bad page")
        with self.assertRaises(ValueError):
            await self.wf.import_url("https://example.com/x")
        self.assertEqual(len(self.wf.candidates), 2)
        self.assertEqual(self.wf.last_error, "bad page")


class TestReview(_WorkflowTestCase):
    """Review stage navigation and edits."""

    async def test_start_review_requires_selection(self) -> None:
        await self.wf.search("chair")
        with self.assertRaises(WorkflowError):
            self.wf.start_review()
        self.assertIs(self.wf.stage, Stage.SEARCH)

    async def test_cursor_navigation_is_clamped(self) -> None:
        await self._review_two()
        self.assertIs(self.wf.stage, Stage.REVIEW)
        self.assertEqual(self.wf.review_position, (1, 2))
        self.assertEqual(self.wf.previous().id, "ali_1")
        self.assertEqual(self.wf.next().id, "ali_2")
        self.assertTrue(self.wf.is_last)
        self.assertEqual(self.wf.next().id, "ali_2")
        self.assertEqual(self.wf.review_position, (2, 2))

    async def test_back_to_search_keeps_marks(self) -> None:
        await self._review_two()
        self.wf.back_to_search()
        self.assertIs(self.wf.stage, Stage.SEARCH)
        self.assertEqual(len(self.wf.marked()), 2)

    async def test_edits(self) -> None:
        await self._review_two()
        self.wf.set_name("ali_1", "  Astrid Chair ")
        self.wf.set_description("ali_1", "Bent oak.")
        self.wf.set_price("ali_1", 99.0)
        cand = self.wf.get("ali_1")
        self.assertEqual(cand.display_name, "Astrid Chair")
        self.assertEqual(cand.display_description, "Bent oak.")
        self.assertEqual(cand.custom_price, 99.0)
        self.wf.set_name("ali_1", "   ")
        self.assertEqual(cand.display_name, "Chair ali_1")

    async def test_negative_price_rejected(self) -> None:
        await self._review_two()
        with self.assertRaises(ValueError):
            self.wf.set_price("ali_1", -1.0)

    async def test_target_change_resets_subcategory(self) -> None:
        await self._review_two()
        self.wf.set_target("ali_1", "furniture", "dining-chairs")
        self.assertEqual(self.wf.get("ali_1").target_subcategory, "dining-chairs")
        self.wf.set_target("ali_1", "decor")
        cand = self.wf.get("ali_1")
        self.assertEqual(cand.target_collection, "decor")
        self.assertEqual(cand.target_subcategory, "")

    async def test_image_toggle_keeps_one(self) -> None:
        await self._review_two()
        self.assertTrue(self.wf.toggle_image("ali_1", 0))
        self.assertTrue(self.wf.toggle_image("ali_1", 1))
        self.assertFalse(self.wf.toggle_image("ali_1", 2))


class TestEnhance(_WorkflowTestCase):
    """AI enhancement through the workflow."""

    async def test_enhance_is_idempotent(self) -> None:
        self.ai.enhance.return_value = EnhancementResult(
            name="Astrid Chair", description="Bent oak frame."
        )
        await self._review_two()
        await self.wf.enhance("ali_1")
        await self.wf.enhance("ali_1")
        cand = self.wf.get("ali_1")
        self.assertEqual(cand.display_name, "Astrid Chair")
        self.assertTrue(cand.ai_enhanced)
        for call in self.ai.enhance.call_args_list:
            self.assertEqual(call.args[0].original_name, "Chair ali_1")

    async def test_enhance_without_ai(self) -> None:
        self.wf.ai = None
        await self.wf.search("chair")
        warnings = await self.wf.enhance("ali_1")
        self.assertEqual(warnings, ["AI enhancement is not configured"])

    async def test_enhance_all_selected_reports_progress(self) -> None:
        self.ai.enhance.return_value = EnhancementResult(
            name="Unknown", description="Bent oak frame."
        )
        await self._review_two()
        seen: list[tuple[int, int, str]] = []
        warnings = await self.wf.enhance_all_selected(
            progress=lambda pos, total, cand: seen.append((pos, total, cand.id))
        )
        self.assertEqual(seen, [(1, 2, "ali_1"), (2, 2, "ali_2")])
        self.assertEqual(set(warnings), {"ali_1", "ali_2"})
        self.assertEqual(self.ai.enhance.call_count, 2)


class TestConfirmImport(_WorkflowTestCase):
    """Commit behaviour."""

    async def test_not_on_last_item(self) -> None:
        await self._review_two()
        with self.assertRaises(WorkflowError):
            await self.wf.confirm_import()
        self.committer.commit.assert_not_called()

    async def test_commit_from_last_item(self) -> None:
        await self._review_two()
        self.wf.next()
        ids = await self.wf.confirm_import()
        self.assertEqual(ids, ["cat_0", "cat_1"])
        self.assertEqual(self.wf.last_commit_ids, ids)
        self.assertIs(self.wf.stage, Stage.SEARCH)
        self.assertEqual(self.wf.marked(), [])
        self.assertEqual(len(self.wf.candidates), 2)
        products: list[CatalogProduct] = self.committer.commit.call_args.args[0]
        self.assertEqual([p.price for p in products], [144.99, 28.99])
        self.assertTrue(all(p.collection == "furniture" for p in products))
        records = self.history.record_imports.call_args.args[0]
        self.assertEqual([r.catalog_id for r in records], ids)

    async def test_commit_covers_only_the_reviewed_set(self) -> None:
        await self._review_two()
        stray = ImportCandidate.from_product(_product("url_stray"), marked=True)
        self.wf.candidates.insert(0, stray)
        self.wf.next()
        await self.wf.confirm_import()
        products: list[CatalogProduct] = self.committer.commit.call_args.args[0]
        self.assertEqual(
            [p.name for p in products], ["Chair ali_1", "Chair ali_2"]
        )

    async def test_commit_from_search_stage(self) -> None:
        await self.wf.search("chair")
        self.wf.toggle_mark("ali_2")
        ids = await self.wf.confirm_import()
        self.assertEqual(len(ids), 1)

    async def test_nothing_marked(self) -> None:
        await self.wf.search("chair")
        with self.assertRaises(WorkflowError):
            await self.wf.confirm_import()

    async def test_commit_failure_keeps_state(self) -> None:
        await self._review_two()
        self.wf.set_name("ali_2", "Linnea Chair")
        self.wf.next()
        self.committer.commit.side_effect = OSError("disk full")
        with self.assertRaises(OSError):
            await self.wf.confirm_import()
        self.assertIs(self.wf.stage, Stage.REVIEW)
        self.assertEqual(self.wf.review_position, (2, 2))
        self.assertEqual(len(self.wf.marked()), 2)
        self.assertEqual(self.wf.get("ali_2").display_name, "Linnea Chair")
        self.assertEqual(self.wf.last_error, "disk full")
        self.history.record_imports.assert_not_called()

    async def test_history_failure_is_a_notice(self) -> None:
        await self._review_two()
        self.wf.next()
        self.history.record_imports.side_effect = sqlite3.OperationalError(
            "database is locked"
        )
        ids = await self.wf.confirm_import()
        self.assertEqual(len(ids), 2)
        self.assertEqual(len(self.wf.notices), 1)
        self.assertIn("database is locked", self.wf.notices[0])
        self.assertIs(self.wf.stage, Stage.SEARCH)


if __name__ == "__main__":
    unittest.main()
