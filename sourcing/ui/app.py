# sourcing/ui/app.py

"""Terminal UI for searching marketplaces and importing products."""

import logging
from typing import cast

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import (
    Button,
    Checkbox,
    DataTable,
    Footer,
    Header,
    Input,
    Static,
)

from sourcing.config.settings import Settings
from sourcing.pricing.engine import describe_rule
from sourcing.services.aggregator import SearchFilters
from sourcing.workflow.commit import final_price
from sourcing.workflow.review import (
    ImportReviewWorkflow,
    Stage,
    WorkflowError,
)

logger = logging.getLogger("sourcing.ui")


class SourcingApp(App[object]):
    """Terminal UI for the product import workflow."""

    CSS = """
    #search_bar, #url_bar, #source_toggles { height: auto; }
    #search_input, #url_input { width: 1fr; }
    #min_rating_input { width: 16; }
    #status { padding: 0 1; }
    #review_panel { height: auto; border: round $accent; }
    #media_table { height: 10; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("m", "toggle_mark", "Mark"),
        Binding("a", "select_all", "All"),
        Binding("r", "review", "Review"),
        Binding("n", "next", "Next"),
        Binding("b", "previous", "Prev"),
        Binding("e", "enhance", "Enhance"),
        Binding("E", "enhance_all", "Enhance all"),
        Binding("c", "confirm", "Import"),
        Binding("escape", "back_to_search", "Search"),
    ]

    def __init__(self, workflow: ImportReviewWorkflow | None = None) -> None:
        super().__init__()
        self.settings = Settings()
        if workflow is None:
            from sourcing.workflow.factory import build_workflow

            workflow = build_workflow()
        self.workflow = workflow

    # ── Layout ───────────────────────────────────────────

    def compose(self) -> ComposeResult:
        """Build the widget tree for the TUI."""
        source_checkboxes = [
            Checkbox(
                src["label"],
                value=src["id"] in self.settings.DEFAULT_SOURCES,
                id=f"check_{src['id']}",
            )
            for src in self.settings.AVAILABLE_SOURCES
        ]

        yield Header()
        yield Container(
            Static("📦 Product Sourcing", id="title"),
            Horizontal(
                Input(placeholder="Search products...", id="search_input"),
                Input(placeholder="Min rating", id="min_rating_input"),
                Button("Search", variant="primary", id="search_btn"),
                id="search_bar",
            ),
            Horizontal(
                Input(placeholder="Import from URL...", id="url_input"),
                Checkbox("AI enhance", value=False, id="enhance_check"),
                Button("Import URL", id="import_btn"),
                id="url_bar",
            ),
            Horizontal(*source_checkboxes, id="source_toggles"),
            Static(self._status_line("Ready"), id="status"),
            cast(
                DataTable[str | Text],
                DataTable(
                    id="results_table",
                    zebra_stripes=True,
                    cursor_type="row",
                ),
            ),
            Vertical(
                Static("", id="review_header"),
                Input(placeholder="Name", id="name_input"),
                Input(placeholder="Description", id="description_input"),
                Input(placeholder="Sale price", id="price_input"),
                Button("Save edits", id="apply_btn"),
                cast(
                    DataTable[str | Text],
                    DataTable(id="media_table", cursor_type="row"),
                ),
                id="review_panel",
            ),
            id="main_container",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Configure table columns and hide the review panel."""
        self._results_table().add_columns(
            "✔", "Name", "Cost", "Sale", "Rating", "Source"
        )
        self._media_table().add_columns("✔", "Media / variant")
        self.query_one("#review_panel").display = False

    def _results_table(self) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text],
            self.query_one("#results_table", DataTable),
        )

    def _media_table(self) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text],
            self.query_one("#media_table", DataTable),
        )

    def _status_line(self, message: str) -> str:
        return f"{message}  |  {describe_rule(self.workflow.pricing_rule)}"

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(self._status_line(message))

    # ── Events ───────────────────────────────────────────

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button click events."""
        if event.button.id == "search_btn":
            await self.perform_search()
        elif event.button.id == "import_btn":
            await self.perform_url_import()
        elif event.button.id == "apply_btn":
            self.apply_edits()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Enter in the search or URL box runs it."""
        if event.input.id in ("search_input", "min_rating_input"):
            await self.perform_search()
        elif event.input.id == "url_input":
            await self.perform_url_import()

    def on_data_table_row_selected(
        self, event: DataTable.RowSelected
    ) -> None:
        """Enter on a media row toggles that image or variant."""
        if event.data_table.id != "media_table":
            return
        key = str(event.row_key.value)
        candidate = self.workflow.current()
        kind, _, ref = key.partition(":")
        if kind == "img":
            changed = self.workflow.toggle_image(candidate.id, int(ref))
        else:
            changed = self.workflow.toggle_variant(candidate.id, ref)
        if not changed:
            self.notify(
                "At least one item must stay selected", severity="warning"
            )
        self.render_review()

    # ── Search stage ─────────────────────────────────────

    def _selected_sources(self) -> list[str]:
        return [
            src["id"]
            for src in self.settings.AVAILABLE_SOURCES
            if self.query_one(f"#check_{src['id']}", Checkbox).value
        ]

    async def perform_search(self) -> None:
        """Run a search across the checked marketplaces."""
        if self.workflow.stage is not Stage.SEARCH:
            self.notify("Finish or leave the review first", severity="warning")
            return
        query = self.query_one("#search_input", Input).value.strip()
        if not query:
            self.notify("Please enter a search term", severity="warning")
            return
        sources = self._selected_sources()
        if not sources:
            self.notify("Select at least one source!", severity="error")
            return

        rating_text = self.query_one("#min_rating_input", Input).value.strip()
        try:
            min_rating = float(rating_text) if rating_text else None
        except ValueError:
            self.notify("Min rating must be a number", severity="error")
            return

        self._results_table().clear()
        self._set_status(f"🔍 Searching '{query}'...")
        try:
            result = await self.workflow.search(
                query,
                filters=SearchFilters(min_rating=min_rating),
                sources=sources,
            )
        except Exception as exc:
            logger.error("Search failed: %s", exc, exc_info=True)
            self._set_status(f"❌ {exc}")
            self.notify(f"Search failed: {exc}", severity="error")
            return
        if result is None:
            return

        for notice in self.workflow.notices:
            self.notify(notice, severity="warning")
        self.populate_table()
        if not self.workflow.candidates:
            self._set_status("❌ No products found")
        else:
            self._set_status(
                f"✅ {len(self.workflow.candidates)} products "
                f"(page {result.current_page}/{result.total_pages})"
            )

    async def perform_url_import(self) -> None:
        """Import a single product page into the list."""
        if self.workflow.stage is not Stage.SEARCH:
            self.notify("Finish or leave the review first", severity="warning")
            return
        url_input = self.query_one("#url_input", Input)
        url = url_input.value.strip()
        if not url:
            self.notify("Please paste a product URL", severity="warning")
            return
        enhance = self.query_one("#enhance_check", Checkbox).value
        self._set_status(f"🔗 Importing {url}...")
        try:
            outcome = await self.workflow.import_url(url, enhance=enhance)
        except Exception as exc:
            logger.error("URL import failed: %s", exc, exc_info=True)
            self._set_status("❌ Import failed")
            self.notify(f"Failed to import URL: {exc}", severity="error")
            return
        for warning in self.workflow.notices:
            self.notify(warning, severity="warning")
        url_input.value = ""
        self.populate_table()
        self._set_status(f"✅ Imported '{outcome.candidate.display_name}'")

    def populate_table(self) -> None:
        """Fill the results table from the workflow's candidates."""
        table = self._results_table()
        table.clear()
        rule = self.workflow.pricing_rule
        for c in self.workflow.candidates:
            table.add_row(
                Text("✔", style="bold green") if c.marked else "",
                c.display_name[:60],
                f"{c.cost_price:.2f}",
                Text(f"{final_price(c, rule):.2f}", style="bold"),
                f"⭐ {c.average_rating:.1f}" if c.average_rating else "",
                c.source.upper(),
                key=c.id,
            )

    def _highlighted_id(self) -> str | None:
        table = self._results_table()
        row = table.cursor_row
        if not 0 <= row < len(self.workflow.candidates):
            return None
        return self.workflow.candidates[row].id

    def action_toggle_mark(self) -> None:
        """Mark or unmark the highlighted product."""
        candidate_id = self._highlighted_id()
        if candidate_id is None or self.workflow.stage is not Stage.SEARCH:
            return
        row = self._results_table().cursor_row
        self.workflow.toggle_mark(candidate_id)
        self.populate_table()
        self._results_table().move_cursor(row=row)

    def action_select_all(self) -> None:
        """Mark everything, or clear the marks if all are marked."""
        if self.workflow.stage is not Stage.SEARCH:
            return
        everything = bool(self.workflow.candidates) and all(
            c.marked for c in self.workflow.candidates
        )
        self.workflow.select_all(not everything)
        self.populate_table()

    # ── Review stage ─────────────────────────────────────

    def action_review(self) -> None:
        """Start reviewing the marked products."""
        try:
            self.workflow.start_review()
        except WorkflowError as exc:
            self.notify(str(exc), severity="warning")
            return
        self.query_one("#review_panel").display = True
        self.render_review()

    def render_review(self) -> None:
        """Show the candidate under the review cursor."""
        candidate = self.workflow.current()
        position, total = self.workflow.review_position
        price = final_price(candidate, self.workflow.pricing_rule)
        suffix = "  (last: press c to import)" if self.workflow.is_last else ""
        self.query_one("#review_header", Static).update(
            f"Reviewing {position}/{total}: {candidate.display_name} "
            f"- {price:.2f} → {candidate.target_collection}{suffix}"
        )
        self.query_one("#name_input", Input).value = candidate.display_name
        self.query_one("#description_input", Input).value = (
            candidate.display_description
        )
        self.query_one("#price_input", Input).value = f"{price:.2f}"

        table = self._media_table()
        table.clear()
        for index, url in enumerate(candidate.images):
            table.add_row(
                "✔" if candidate.is_image_selected(index) else "",
                f"Image {index + 1}: {url[:60]}",
                key=f"img:{index}",
            )
        for variant in candidate.variants:
            table.add_row(
                "✔" if candidate.is_variant_selected(variant.id) else "",
                f"Variant: {variant.name}",
                key=f"var:{variant.id}",
            )

    def apply_edits(self) -> None:
        """Store the edited name, description and price."""
        if self.workflow.stage is not Stage.REVIEW:
            return
        candidate = self.workflow.current()
        price_text = self.query_one("#price_input", Input).value.strip()
        try:
            price = float(price_text) if price_text else None
            self.workflow.set_price(candidate.id, price)
        except ValueError as exc:
            self.notify(f"Invalid price: {exc}", severity="error")
            return
        self.workflow.set_name(
            candidate.id, self.query_one("#name_input", Input).value
        )
        self.workflow.set_description(
            candidate.id, self.query_one("#description_input", Input).value
        )
        self.notify("Saved")
        self.render_review()

    def action_next(self) -> None:
        """Move to the next reviewed product."""
        if self.workflow.stage is Stage.REVIEW:
            self.workflow.next()
            self.render_review()

    def action_previous(self) -> None:
        """Move to the previous reviewed product."""
        if self.workflow.stage is Stage.REVIEW:
            self.workflow.previous()
            self.render_review()

    async def action_enhance(self) -> None:
        """AI-rewrite the current product's name and description."""
        if self.workflow.stage is not Stage.REVIEW:
            return
        candidate = self.workflow.current()
        self._set_status(f"✨ Enhancing '{candidate.name[:40]}'...")
        warnings = await self.workflow.enhance(candidate.id)
        for warning in warnings:
            self.notify(warning, severity="warning")
        self._set_status("Ready")
        self.render_review()

    async def action_enhance_all(self) -> None:
        """AI-rewrite every marked product, one at a time."""
        def report(position: int, total: int, _: object) -> None:
            self._set_status(f"✨ Enhancing {position}/{total}...")

        warnings = await self.workflow.enhance_all_selected(progress=report)
        if warnings:
            self.notify(
                f"{len(warnings)} products kept their original text",
                severity="warning",
            )
        self._set_status("Ready")
        if self.workflow.stage is Stage.REVIEW:
            self.render_review()
        else:
            self.populate_table()

    async def action_confirm(self) -> None:
        """Commit the marked products to the catalog."""
        try:
            ids = await self.workflow.confirm_import()
        except WorkflowError as exc:
            self.notify(str(exc), severity="warning")
            return
        except Exception as exc:
            logger.error("Import failed: %s", exc, exc_info=True)
            self.notify(f"Import failed: {exc}", severity="error")
            return
        for notice in self.workflow.notices:
            self.notify(notice, severity="warning")
        self.query_one("#review_panel").display = False
        self.populate_table()
        self._set_status(f"✅ Imported {len(ids)} products")
        self.notify(f"Imported {len(ids)} products")

    def action_back_to_search(self) -> None:
        """Leave the review without importing."""
        if self.workflow.stage is Stage.REVIEW:
            self.workflow.back_to_search()
            self.query_one("#review_panel").display = False
            self.populate_table()
