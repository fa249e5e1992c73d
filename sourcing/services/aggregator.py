# sourcing/services/aggregator.py

"""Fans a search out to several marketplaces and merges the results."""

import asyncio
import importlib
import logging
from dataclasses import asdict, dataclass, field

from sourcing.clients.base_client import BaseCatalogClient
from sourcing.clients.errors import CatalogError
from sourcing.clients.rate_limiter import RateLimiter
from sourcing.config.settings import Settings
from sourcing.filters.deduplicator import ProductDeduplicator
from sourcing.filters.product_filter import ProductFilter
from sourcing.filters.product_validator import ProductValidator
from sourcing.filters.query_optimizer import QueryOptimizer
from sourcing.models.product import ExternalProduct, SearchPage
from sourcing.storage.response_cache import ResponseCache, make_cache_key

logger = logging.getLogger("sourcing.aggregator")


@dataclass
class SearchFilters:
    """Optional narrowing applied to an aggregated search."""

    min_price: float | None = None
    max_price: float | None = None
    min_rating: float | None = None
    sort_by: str | None = None


@dataclass
class AggregatedResult:
    """Merged outcome of one search across several marketplaces."""

    query: str
    products: list[ExternalProduct] = field(
        default_factory=lambda: list[ExternalProduct]()
    )
    total_count: int = 0
    current_page: int = 1
    total_pages: int = 1
    sources: list[str] = field(default_factory=lambda: list[str]())
    errors: list[str] = field(default_factory=lambda: list[str]())
    invalid_count: int = 0
    excluded_count: int = 0
    deduplicated_count: int = 0


def _load_client_class(dotted_path: str) -> type[BaseCatalogClient]:
    """Dynamically import a client class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[BaseCatalogClient] = getattr(module, class_name)
    return cls


class SourceAggregator:
    """Coordinates concurrent marketplace searches and filtering.

    Client calls are blocking, so each runs in a worker thread; the
    shared :class:`RateLimiter` still spaces the actual requests.  A
    failing marketplace only contributes an entry to ``errors``.  The
    search raises only when every requested marketplace failed.
    """

    def __init__(
        self,
        cache: ResponseCache,
        limiter: RateLimiter,
        clients: dict[str, BaseCatalogClient] | None = None,
    ) -> None:
        self.settings = Settings()
        self.cache = cache
        self.limiter = limiter
        self._clients: dict[str, BaseCatalogClient] = dict(clients or {})
        self._registry: dict[str, dict[str, str]] = {
            s["id"]: s for s in self.settings.AVAILABLE_SOURCES
        }

    # ── Client registry ──────────────────────────────────

    def label_for(self, source_id: str) -> str:
        """Human-readable marketplace name."""
        entry = self._registry.get(source_id)
        return entry["label"] if entry else source_id

    def client_for(self, source_id: str) -> BaseCatalogClient:
        """Return the (lazily constructed) client for a marketplace."""
        client = self._clients.get(source_id)
        if client is not None:
            return client
        entry = self._registry.get(source_id)
        if entry is None:
            raise ValueError(f"Unknown marketplace: {source_id!r}")
        client_cls = _load_client_class(entry["client"])
        client = client_cls(self.cache, self.limiter)
        self._clients[source_id] = client
        return client

    # ── Private helpers ──────────────────────────────────

    async def _run_clients(
        self,
        query: str,
        page: int,
        page_size: int,
        filters: SearchFilters,
        sources: list[str],
    ) -> tuple[list[SearchPage], list[tuple[str, BaseException]]]:
        """Dispatch one search per marketplace concurrently."""

        async def run_one(source_id: str) -> SearchPage:
            client = self.client_for(source_id)
            return await asyncio.to_thread(
                client.search,
                query,
                page,
                page_size,
                filters.min_price,
                filters.max_price,
                filters.sort_by,
            )

        outcomes = await asyncio.gather(
            *(run_one(s) for s in sources), return_exceptions=True
        )

        pages: list[SearchPage] = []
        failures: list[tuple[str, BaseException]] = []
        for source_id, outcome in zip(sources, outcomes):
            if isinstance(outcome, SearchPage):
                pages.append(outcome)
            elif isinstance(outcome, BaseException):
                failures.append((source_id, outcome))
                logger.error(
                    "Search on %s failed for '%s': %s",
                    source_id,
                    query,
                    outcome,
                    exc_info=outcome,
                )
        return pages, failures

    def _describe_failure(
        self, source_id: str, exc: BaseException,
    ) -> str:
        # Catalog errors already carry the marketplace label.
        if isinstance(exc, CatalogError):
            return str(exc)
        return f"{self.label_for(source_id)}: {exc}"

    # ── Public entry point ───────────────────────────────

    async def search_all_sources(
        self,
        query: str,
        page: int = 1,
        page_size: int | None = None,
        filters: SearchFilters | None = None,
        sources: list[str] | None = None,
    ) -> AggregatedResult:
        """Search several marketplaces and merge their listings.

        Listings are validated, deduplicated by id, filtered by price
        range and minimum rating, then sorted.  Complete results are
        cached for 10 minutes.
        """
        filters = filters or SearchFilters()
        page_size = page_size or self.settings.AGGREGATED_PAGE_SIZE
        sources = list(sources or self.settings.DEFAULT_SOURCES)
        optimized = QueryOptimizer.optimize(query)

        key = make_cache_key(
            "aggregated",
            query=optimized,
            page=page,
            page_size=page_size,
            filters=asdict(filters),
            sources=sources,
        )
        cached = self.cache.get_cached(key)
        if cached is not None:
            logger.info("Aggregated cache hit for '%s'", optimized)
            return cached

        pages, failures = await self._run_clients(
            optimized, page, page_size, filters, sources
        )
        if sources and not pages:
            logger.error(
                "All %d marketplaces failed for '%s'",
                len(sources),
                optimized,
            )
            raise failures[0][1]

        result = AggregatedResult(
            query=optimized,
            current_page=page,
            sources=sources,
            errors=[
                self._describe_failure(source_id, exc)
                for source_id, exc in failures
            ],
        )

        merged: list[ExternalProduct] = []
        for search_page in pages:
            merged.extend(search_page.products)
        result.total_count = sum(p.total_count for p in pages)
        result.total_pages = max(
            [p.total_pages for p in pages] + [1]
        )

        merged, result.invalid_count = ProductValidator.validate(merged)
        merged, result.deduplicated_count = (
            ProductDeduplicator.deduplicate(merged)
        )
        merged, price_excluded = ProductFilter.filter_by_price(
            merged, filters.min_price, filters.max_price
        )
        merged, rating_excluded = ProductFilter.filter_by_rating(
            merged, filters.min_rating
        )
        result.excluded_count = price_excluded + rating_excluded
        result.products = ProductFilter.sort(merged, filters.sort_by)

        logger.info(
            "Aggregated '%s': %d listings from %d/%d marketplaces",
            optimized,
            len(result.products),
            len(pages),
            len(sources),
        )
        if not result.errors:
            self.cache.set_cache(
                key, result, self.settings.AGGREGATED_CACHE_TTL
            )
        return result
