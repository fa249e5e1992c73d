# sourcing/workflow/review.py

"""Search, select, review and commit: the import wizard's state machine."""

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Iterable
from enum import Enum

from sourcing.config.settings import Settings
from sourcing.importer.url_importer import (
    ENHANCEABLE_FIELDS,
    ImportOutcome,
    UrlImporter,
    enhance_candidate,
)
from sourcing.models.candidate import ImportCandidate
from sourcing.models.collection import Collection, load_collections
from sourcing.pricing.engine import (
    DEFAULT_PRICING_RULE,
    PricingRule,
    compute_sale_price,
)
from sourcing.services.ai_text import AiTextClient
from sourcing.services.aggregator import (
    AggregatedResult,
    SearchFilters,
    SourceAggregator,
)
from sourcing.storage.catalog_store import CatalogCommitter
from sourcing.storage.import_history_db import ImportHistoryDB
from sourcing.workflow.commit import (
    build_catalog_products,
    build_import_records,
)

logger = logging.getLogger("sourcing.workflow")

ProgressCallback = Callable[[int, int, ImportCandidate], None]


class Stage(str, Enum):
    """Where the user is in the wizard."""

    SEARCH = "search"
    REVIEW = "review"


class WorkflowError(Exception):
    """An operation was attempted from a stage that does not allow it."""


class ImportReviewWorkflow:
    """Holds the browsed candidates and walks the user through an import.

    In ``SEARCH`` the user runs searches or URL imports and marks
    candidates.  ``start_review`` freezes the marked set and walks a
    cursor over it; per-item edits and AI enhancement happen there.
    ``confirm_import`` on the last item commits the batch and returns
    to ``SEARCH`` with the browsed list kept and every mark cleared.

    Each search takes a generation number; a response that arrives
    after a newer search or a review started is dropped instead of
    overwriting it.  Candidate ids are unique within the list: a URL
    import of a listing already present replaces it.
    """

    def __init__(
        self,
        aggregator: SourceAggregator,
        importer: UrlImporter,
        committer: CatalogCommitter,
        ai: AiTextClient | None = None,
        history: ImportHistoryDB | None = None,
        collections: list[Collection] | None = None,
        rule: PricingRule = DEFAULT_PRICING_RULE,
        default_collection: str = Settings.DEFAULT_COLLECTION,
    ) -> None:
        self.aggregator = aggregator
        self.importer = importer
        self.committer = committer
        self.ai = ai
        self.history = history
        self.collections = (
            collections if collections is not None else load_collections()
        )
        self.pricing_rule = rule
        self.default_collection = default_collection
        self.default_subcategory = ""

        self.stage = Stage.SEARCH
        self.candidates: list[ImportCandidate] = []
        self.last_error: str | None = None
        self.notices: list[str] = []
        self.last_query = ""
        self.current_page = 1
        self.total_pages = 1
        self.total_count = 0
        self.last_commit_ids: list[str] = []

        self._generation = 0
        self._review_ids: list[str] = []
        self._cursor = 0

    # ── Lookup ───────────────────────────────────────────

    def _require_stage(self, stage: Stage, action: str) -> None:
        if self.stage is not stage:
            raise WorkflowError(
                f"Cannot {action} while in {self.stage.value} stage"
            )

    def get(self, candidate_id: str) -> ImportCandidate:
        """Return the candidate with ``candidate_id``."""
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        raise WorkflowError(f"No candidate with id {candidate_id!r}")

    def marked(self) -> list[ImportCandidate]:
        """Candidates currently marked for import, in list order."""
        return [c for c in self.candidates if c.marked]

    def batch(self) -> list[ImportCandidate]:
        """Candidates the next bulk action or commit applies to.

        The set frozen by ``start_review`` while reviewing, otherwise
        every marked candidate.
        """
        if self.stage is Stage.REVIEW:
            return [self.get(cid) for cid in self._review_ids]
        return self.marked()

    def _new_candidate(self, product: ImportCandidate) -> ImportCandidate:
        product.custom_price = compute_sale_price(
            product.cost_price, self.pricing_rule
        )
        product.target_collection = self.default_collection
        product.target_subcategory = self.default_subcategory
        return product

    # ── Configuration ────────────────────────────────────

    def set_pricing_rule(self, rule: PricingRule) -> None:
        """Use ``rule`` for candidates fetched from now on."""
        self.pricing_rule = rule
        logger.info("Pricing rule changed to %s", rule)

    def set_default_target(
        self, collection: str, subcategory: str = "",
    ) -> None:
        """Collection and subcategory assigned to new candidates."""
        self.default_collection = collection
        self.default_subcategory = subcategory

    # ── Search stage ─────────────────────────────────────

    async def search(
        self,
        query: str,
        page: int = 1,
        filters: SearchFilters | None = None,
        sources: list[str] | None = None,
    ) -> AggregatedResult | None:
        """Replace the candidate list with fresh search results.

        Returns ``None`` when a newer search or a review superseded
        this one.  On failure the list is cleared, ``last_error`` is set
        and the exception propagates.
        """
        self._require_stage(Stage.SEARCH, "search")
        self._generation += 1
        generation = self._generation
        self.last_error = None
        try:
            result = await self.aggregator.search_all_sources(
                query, page=page, filters=filters, sources=sources
            )
        except Exception as exc:
            if generation != self._generation:
                logger.info("Dropped failure of superseded search '%s'", query)
                return None
            self.candidates = []
            self.last_error = str(exc)
            logger.error("Search '%s' failed: %s", query, exc)
            raise

        if generation != self._generation:
            logger.info("Dropped results of superseded search '%s'", query)
            return None

        self.candidates = [
            self._new_candidate(ImportCandidate.from_product(p))
            for p in result.products
        ]
        self.notices = list(result.errors)
        self.last_query = query
        self.current_page = result.current_page
        self.total_pages = result.total_pages
        self.total_count = result.total_count
        logger.info(
            "Search '%s' page %d: %d candidates",
            query,
            page,
            len(self.candidates),
        )
        return result

    async def import_url(
        self, url: str, enhance: bool = False,
    ) -> ImportOutcome:
        """Import one product page and put it at the top of the list.

        A candidate with the same id is replaced rather than duplicated.
        Raises :class:`WorkflowError` when a review started while the
        page was being fetched; the imported listing is discarded.
        """
        self._require_stage(Stage.SEARCH, "import a URL")
        self.last_error = None
        try:
            outcome = await asyncio.to_thread(
                self.importer.import_from_url,
                url,
                enhance,
                self.default_collection,
                self.pricing_rule,
            )
        except Exception as exc:
            self.last_error = str(exc)
            logger.error("Import of %s failed: %s", url, exc)
            raise

        if self.stage is not Stage.SEARCH:
            logger.info("Dropped import of %s: review started meanwhile", url)
            raise WorkflowError(
                "A review started while the page was loading; "
                "import it again afterwards"
            )

        candidate = outcome.candidate
        candidate.target_subcategory = self.default_subcategory
        replaced = any(c.id == candidate.id for c in self.candidates)
        self.candidates = [
            c for c in self.candidates if c.id != candidate.id
        ]
        self.candidates.insert(0, candidate)
        self.notices = list(outcome.warnings)
        if replaced:
            logger.info("Re-import of %s replaced the listed copy", candidate.id)
            self.notices.append(
                f"'{candidate.display_name}' was already listed; replaced it"
            )
        return outcome

    def toggle_mark(self, candidate_id: str) -> bool:
        """Flip a candidate's import mark; returns the new state."""
        self._require_stage(Stage.SEARCH, "change the selection")
        candidate = self.get(candidate_id)
        candidate.marked = not candidate.marked
        return candidate.marked

    def select_all(self, marked: bool = True) -> None:
        """Mark or unmark every browsed candidate."""
        self._require_stage(Stage.SEARCH, "change the selection")
        for candidate in self.candidates:
            candidate.marked = marked

    # ── Review stage ─────────────────────────────────────

    def start_review(self) -> ImportCandidate:
        """Enter review on the first marked candidate."""
        self._require_stage(Stage.SEARCH, "start a review")
        marked = self.marked()
        if not marked:
            raise WorkflowError("Select at least one product to import")
        # Searches still in flight must not replace the reviewed list
        self._generation += 1
        self._review_ids = [c.id for c in marked]
        self._cursor = 0
        self.stage = Stage.REVIEW
        logger.info("Reviewing %d candidates", len(marked))
        return marked[0]

    @property
    def review_position(self) -> tuple[int, int]:
        """1-based cursor position and the review length."""
        return self._cursor + 1, len(self._review_ids)

    @property
    def is_last(self) -> bool:
        """Whether the cursor sits on the final reviewed candidate."""
        return self._cursor == len(self._review_ids) - 1

    def current(self) -> ImportCandidate:
        """The candidate under the review cursor."""
        self._require_stage(Stage.REVIEW, "read the review cursor")
        return self.get(self._review_ids[self._cursor])

    def next(self) -> ImportCandidate:
        """Advance the cursor (stays put on the last candidate)."""
        self._require_stage(Stage.REVIEW, "move the review cursor")
        self._cursor = min(self._cursor + 1, len(self._review_ids) - 1)
        return self.current()

    def previous(self) -> ImportCandidate:
        """Move the cursor back (stays put on the first candidate)."""
        self._require_stage(Stage.REVIEW, "move the review cursor")
        self._cursor = max(self._cursor - 1, 0)
        return self.current()

    def back_to_search(self) -> None:
        """Leave review without committing; marks are kept."""
        self.stage = Stage.SEARCH
        self._review_ids = []
        self._cursor = 0

    # ── Per-candidate edits ──────────────────────────────

    def set_name(self, candidate_id: str, name: str) -> None:
        """Override the name; blank restores the original."""
        self.get(candidate_id).custom_name = name.strip() or None

    def set_description(self, candidate_id: str, description: str) -> None:
        """Override the description; blank restores the original."""
        self.get(candidate_id).custom_description = (
            description.strip() or None
        )

    def set_price(self, candidate_id: str, price: float | None) -> None:
        """Override the sale price; ``None`` falls back to the rule."""
        if price is not None and price < 0:
            raise ValueError("Price cannot be negative")
        self.get(candidate_id).custom_price = price

    def set_target(
        self,
        candidate_id: str,
        collection: str,
        subcategory: str = "",
    ) -> None:
        """Choose where the product lands in the catalog.

        Switching collection drops a subcategory that belonged to the
        previous one.
        """
        candidate = self.get(candidate_id)
        if collection != candidate.target_collection:
            candidate.target_subcategory = ""
        candidate.target_collection = collection
        if subcategory:
            candidate.target_subcategory = subcategory

    def toggle_image(self, candidate_id: str, index: int) -> bool:
        """Toggle one image; the last selected image cannot be dropped."""
        return self.get(candidate_id).toggle_image(index)

    def toggle_variant(self, candidate_id: str, variant_id: str) -> bool:
        """Toggle one variant; the last selected variant cannot be dropped."""
        return self.get(candidate_id).toggle_variant(variant_id)

    # ── AI enhancement ───────────────────────────────────

    async def enhance(
        self,
        candidate_id: str,
        fields: Iterable[str] = ENHANCEABLE_FIELDS,
    ) -> list[str]:
        """Rewrite name and/or description; returns warnings."""
        candidate = self.get(candidate_id)
        if self.ai is None:
            return ["AI enhancement is not configured"]
        warnings = await asyncio.to_thread(
            enhance_candidate, self.ai, candidate, frozenset(fields)
        )
        for warning in warnings:
            logger.warning("%s: %s", candidate_id, warning)
        return warnings

    async def enhance_all_selected(
        self,
        fields: Iterable[str] = ENHANCEABLE_FIELDS,
        progress: ProgressCallback | None = None,
    ) -> dict[str, list[str]]:
        """Enhance every candidate in the batch one after another.

        Returns warnings keyed by candidate id (only ids with warnings).
        """
        field_set = frozenset(fields)
        targets = self.batch()
        warnings: dict[str, list[str]] = {}
        for position, candidate in enumerate(targets, start=1):
            if progress is not None:
                progress(position, len(targets), candidate)
            item_warnings = await self.enhance(candidate.id, field_set)
            if item_warnings:
                warnings[candidate.id] = item_warnings
        logger.info(
            "Enhanced %d candidates (%d with warnings)",
            len(targets),
            len(warnings),
        )
        return warnings

    # ── Commit ───────────────────────────────────────────

    async def confirm_import(self) -> list[str]:
        """Commit the reviewed candidates and return the new catalog ids.

        Allowed on the last reviewed candidate, which commits exactly the
        set frozen by ``start_review``, or straight from the search stage
        with every marked candidate.  If the commit fails, the stage,
        cursor and all edits are left as they were.
        """
        if self.stage is Stage.REVIEW and not self.is_last:
            raise WorkflowError("Review every product before importing")
        candidates = self.batch()
        if not candidates:
            raise WorkflowError("Select at least one product to import")

        products = build_catalog_products(
            candidates,
            self.pricing_rule,
            self.collections,
            self.default_collection,
        )
        self.last_error = None
        try:
            ids = await asyncio.to_thread(self.committer.commit, products)
        except Exception as exc:
            self.last_error = str(exc)
            logger.error("Commit failed: %s", exc, exc_info=True)
            raise

        self.notices = []
        if self.history is not None:
            records = build_import_records(
                candidates, products, ids, self.pricing_rule
            )
            try:
                await asyncio.to_thread(self.history.record_imports, records)
            except sqlite3.Error as exc:
                logger.error(
                    "Could not record import history: %s", exc, exc_info=True
                )
                self.notices.append(f"Import history not updated: {exc}")

        for candidate in self.candidates:
            candidate.marked = False
        self.back_to_search()
        self.last_commit_ids = ids
        logger.info("Imported %d products", len(ids))
        return ids
