# main.py

"""Entry point for the product sourcing tool (TUI or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from sourcing.config.logging_config import setup_logging
from sourcing.config.settings import Settings
from sourcing.filters.product_filter import SORT_OPTIONS
from sourcing.pricing.engine import (
    DEFAULT_PRICING_RULE,
    MarkupKind,
    PricingRule,
)

logger = logging.getLogger("sourcing.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="sourcing",
        description="Search marketplaces and import products to the catalog.",
        epilog=f"Available sources: {valid_ids}",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Search query. Omit to launch the interactive TUI.",
    )
    parser.add_argument(
        "-s",
        "--sources",
        default=None,
        help="Comma-separated source IDs (default: aliexpress,alibaba).",
    )
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--min-price", type=float, default=None)
    parser.add_argument("--max-price", type=float, default=None)
    parser.add_argument("--min-rating", type=float, default=None)
    parser.add_argument(
        "--sort",
        choices=SORT_OPTIONS,
        default=None,
        dest="sort_by",
    )
    parser.add_argument(
        "--markup",
        type=float,
        default=None,
        help="Markup value (default: 45).",
    )
    parser.add_argument(
        "--markup-kind",
        choices=["percentage", "fixed"],
        default="percentage",
    )
    parser.add_argument(
        "--no-round",
        action="store_true",
        default=False,
        help="Do not round prices up to .99.",
    )
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help="Import a single product page instead of searching.",
    )
    parser.add_argument(
        "--enhance",
        action="store_true",
        default=False,
        help="AI-rewrite the name and description of an imported URL.",
    )
    parser.add_argument(
        "--commit",
        action="store_true",
        default=False,
        help="Write the results straight into the catalog.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--history",
        action="store_true",
        default=False,
        help="Show recent imports and statistics.",
    )
    parser.add_argument(
        "--collection",
        default=None,
        help="Target collection for imports / history filter.",
    )
    return parser


def _pricing_rule(args: argparse.Namespace) -> PricingRule:
    """Build the markup rule from the command-line flags."""
    return PricingRule(
        kind=MarkupKind(args.markup_kind),
        value=(
            DEFAULT_PRICING_RULE.value
            if args.markup is None
            else args.markup
        ),
        round_up=not args.no_round,
    )


def _run_tui() -> None:
    """Launch the interactive Textual TUI."""
    from sourcing.ui.app import SourcingApp

    try:
        app = SourcingApp()
        app.run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        logger.info("sourcing TUI shutting down")


def _run_cli(args: argparse.Namespace) -> None:
    """Run a headless search or URL import and exit."""
    from sourcing.cli.runner import cli_import_url, cli_search
    from sourcing.services.aggregator import SearchFilters
    from sourcing.workflow.factory import build_workflow

    workflow = build_workflow()
    workflow.set_pricing_rule(_pricing_rule(args))
    if args.collection:
        workflow.set_default_target(args.collection)

    if args.url:
        coro = cli_import_url(
            workflow,
            args.url,
            enhance=args.enhance,
            output_format=args.output_format,
            commit=args.commit,
        )
    else:
        coro = cli_search(
            workflow,
            args.query,
            source_csv=args.sources,
            filters=SearchFilters(
                min_price=args.min_price,
                max_price=args.max_price,
                min_rating=args.min_rating,
                sort_by=args.sort_by,
            ),
            page=args.page,
            output_format=args.output_format,
            commit=args.commit,
        )
    sys.exit(asyncio.run(coro))


def _run_history(args: argparse.Namespace) -> None:
    """Print the import history."""
    from sourcing.cli.runner import run_import_history

    sys.exit(run_import_history(collection=args.collection))


def main() -> None:
    """Route to TUI (no args) or headless CLI (query or URL provided)."""
    log_file = setup_logging()
    logger.info("sourcing starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.history:
        _run_history(args)
    elif args.query is None and args.url is None:
        _run_tui()
    else:
        _run_cli(args)


if __name__ == "__main__":
    main()
