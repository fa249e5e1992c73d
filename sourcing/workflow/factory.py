# sourcing/workflow/factory.py

"""Assemble the shared services behind one import workflow."""

import logging
from pathlib import Path

from sourcing.clients.aliexpress_client import AliExpressClient
from sourcing.clients.rate_limiter import RateLimiter
from sourcing.importer.page_scraper import PageScraper
from sourcing.importer.url_importer import UrlImporter
from sourcing.services.aggregator import SourceAggregator
from sourcing.services.ai_text import AiTextClient
from sourcing.storage.catalog_store import JsonCatalogStore
from sourcing.storage.import_history_db import ImportHistoryDB
from sourcing.storage.response_cache import ResponseCache
from sourcing.workflow.review import ImportReviewWorkflow

logger = logging.getLogger("sourcing.factory")


def build_workflow(
    catalog_path: Path | None = None,
    history_path: Path | None = None,
) -> ImportReviewWorkflow:
    """Wire one cache and one rate limiter into every network client."""
    cache = ResponseCache()
    limiter = RateLimiter()
    aliexpress = AliExpressClient(cache, limiter)
    aggregator = SourceAggregator(
        cache, limiter, clients={"aliexpress": aliexpress}
    )
    ai = AiTextClient(limiter=limiter)
    importer = UrlImporter(PageScraper(aliexpress, limiter), ai)
    logger.debug("Workflow services assembled")
    return ImportReviewWorkflow(
        aggregator,
        importer,
        JsonCatalogStore(catalog_path),
        ai=ai,
        history=ImportHistoryDB(history_path),
    )
