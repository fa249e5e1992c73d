# sourcing/cli/runner.py

"""Headless CLI: search, URL import and import history."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from sourcing.config.settings import Settings
from sourcing.models.candidate import ImportCandidate
from sourcing.pricing.engine import PricingRule, describe_rule
from sourcing.services.aggregator import SearchFilters
from sourcing.storage.import_history_db import ImportHistoryDB
from sourcing.workflow.commit import final_price
from sourcing.workflow.review import ImportReviewWorkflow

logger = logging.getLogger("sourcing.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def resolve_sources(source_csv: str | None) -> list[str]:
    """Map a comma-separated list of marketplace ids to a list.

    Returns the default marketplaces when *source_csv* is ``None``.
    Raises ``SystemExit`` on unknown ids.
    """
    available = {s["id"] for s in Settings.AVAILABLE_SOURCES}
    if source_csv is None:
        return list(Settings.DEFAULT_SOURCES)

    requested = [s.strip() for s in source_csv.split(",") if s.strip()]
    unknown = [r for r in requested if r not in available]
    if unknown:
        _err.print(f"[red]Unknown source(s): {', '.join(unknown)}[/red]")
        _err.print(f"[dim]Available: {', '.join(sorted(available))}[/dim]")
        raise SystemExit(1)
    return requested


def _candidates_to_dicts(
    candidates: list[ImportCandidate], rule: PricingRule,
) -> list[dict[str, object]]:
    """Serialise candidates to plain dicts for JSON output."""
    return [
        {
            "id": c.id,
            "name": c.display_name,
            "cost": c.cost_price,
            "suggested_price": final_price(c, rule),
            "rating": c.average_rating,
            "reviews": c.review_count,
            "source": c.source,
            "url": c.product_url,
            "images": c.images,
            "variants": [v.name for v in c.variants],
        }
        for c in candidates
    ]


def _print_table(
    candidates: list[ImportCandidate], rule: PricingRule,
) -> None:
    """Render a Rich table of candidates to stdout."""
    table = Table(
        title=f"Search Results ({describe_rule(rule)})",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=60)
    table.add_column("Cost", justify="right")
    table.add_column("Sale", justify="right", style="green")
    table.add_column("Rating", justify="center")
    table.add_column("Source", style="magenta")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, c in enumerate(candidates, 1):
        table.add_row(
            str(idx),
            c.display_name[:60],
            f"{c.cost_price:,.2f}",
            f"{final_price(c, rule):,.2f}",
            f"{c.average_rating:.1f}" if c.average_rating else "—",
            c.source,
            c.product_url,
        )

    Console().print(table)


def _emit(
    candidates: list[ImportCandidate],
    rule: PricingRule,
    output_format: str,
) -> None:
    if output_format == "table":
        _print_table(candidates, rule)
    else:
        json.dump(
            _candidates_to_dicts(candidates, rule),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")


async def cli_search(
    workflow: ImportReviewWorkflow,
    query: str,
    source_csv: str | None,
    filters: SearchFilters,
    page: int,
    output_format: str,
    commit: bool = False,
) -> int:
    """Run a headless search and return an exit code (0=ok, 1=fail).

    With ``commit`` every result is imported straight away.
    """
    sources = resolve_sources(source_csv)
    _err.print(
        f"[bold]Searching:[/bold] {query}  "
        f"[dim]sources={', '.join(sources)} page={page}[/dim]"
    )

    try:
        result = await workflow.search(
            query, page=page, filters=filters, sources=sources
        )
    except Exception as exc:
        logger.error("CLI search failed: %s", exc, exc_info=True)
        _err.print(f"[red]Search failed: {exc}[/red]")
        return 1

    for error_msg in workflow.notices:
        _err.print(f"[red]Error: {error_msg}[/red]")

    if result is None or not workflow.candidates:
        _err.print("[yellow]No products found.[/yellow]")
        return 1

    parts: list[str] = []
    if result.excluded_count:
        parts.append(f"{result.excluded_count} filtered")
    if result.deduplicated_count:
        parts.append(f"{result.deduplicated_count} deduped")
    if result.invalid_count:
        parts.append(f"{result.invalid_count} invalid")
    detail = f" ({', '.join(parts)})" if parts else ""
    _err.print(
        f"[green]✓ {len(workflow.candidates)} products"
        f" of ~{result.total_count} (page {result.current_page}"
        f"/{result.total_pages}){detail}[/green]"
    )

    _emit(workflow.candidates, workflow.pricing_rule, output_format)

    if commit:
        workflow.select_all(True)
        return await _commit(workflow)
    return 0


async def cli_import_url(
    workflow: ImportReviewWorkflow,
    url: str,
    enhance: bool,
    output_format: str,
    commit: bool = False,
) -> int:
    """Import a single product URL and optionally commit it."""
    _err.print(f"[bold]Importing:[/bold] {url}")
    try:
        outcome = await workflow.import_url(url, enhance=enhance)
    except Exception as exc:
        logger.error("CLI URL import failed: %s", exc, exc_info=True)
        _err.print(f"[red]Import failed: {exc}[/red]")
        return 1

    for warning in outcome.warnings:
        _err.print(f"[yellow]Warning: {warning}[/yellow]")
    _emit([outcome.candidate], workflow.pricing_rule, output_format)

    if commit:
        return await _commit(workflow)
    return 0


async def _commit(workflow: ImportReviewWorkflow) -> int:
    try:
        ids = await workflow.confirm_import()
    except Exception as exc:
        logger.error("CLI commit failed: %s", exc, exc_info=True)
        _err.print(f"[red]Import failed: {exc}[/red]")
        return 1
    for notice in workflow.notices:
        _err.print(f"[yellow]Warning: {notice}[/yellow]")
    _err.print(f"[green]✓ Imported {len(ids)} products[/green]")
    return 0


def run_import_history(
    limit: int = 50,
    collection: str | None = None,
    db: ImportHistoryDB | None = None,
) -> int:
    """Print recent imports and aggregate statistics."""
    history = db or ImportHistoryDB()
    try:
        records = history.get_import_history(limit, collection)
        stats = history.get_import_stats()
    finally:
        if db is None:
            history.close()

    if not records:
        _err.print("[yellow]No imports recorded yet.[/yellow]")
        return 0

    table = Table(
        title="Import History",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("When", style="dim")
    table.add_column("Name", max_width=50)
    table.add_column("Cost", justify="right")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Collection", style="magenta")
    table.add_column("AI", justify="center")

    for r in records:
        table.add_row(
            r.imported_at.strftime("%Y-%m-%d %H:%M"),
            r.imported_name,
            f"{r.original_price:,.2f}",
            f"{r.imported_price:,.2f}",
            r.collection,
            "✨" if r.ai_enhanced else "",
        )

    Console().print(table)
    by_collection = ", ".join(
        f"{name}: {count}" for name, count in stats["by_collection"].items()
    )
    _err.print(
        f"[bold]{stats['total_imported']} imported[/bold], "
        f"{stats['ai_enhanced']} AI-enhanced, "
        f"avg markup {stats['average_markup']:,.2f}  "
        f"[dim]({by_collection})[/dim]"
    )
    return 0
