# sourcing/clients/base_client.py

"""Abstract base class for all external catalog clients."""

import logging
import math
from abc import ABC, abstractmethod
from typing import Any

from curl_cffi import requests as curl_requests

from sourcing.clients.errors import (
    AuthenticationError,
    RateLimitedError,
    UpstreamError,
)
from sourcing.clients.normalizers import normalize_safely
from sourcing.clients.rate_limiter import RateLimiter
from sourcing.config.settings import Settings
from sourcing.models.product import ExternalProduct, SearchPage
from sourcing.storage.response_cache import ResponseCache, make_cache_key


class BaseCatalogClient(ABC):
    """Search and detail lookups against one RapidAPI marketplace.

    Every call goes cache first, then through the shared rate limiter,
    then out over a browser-impersonating ``curl_cffi`` session.  HTTP
    failures are mapped onto the :mod:`sourcing.clients.errors`
    taxonomy and are never retried here.
    """

    source_id: str = ""
    id_prefix: str = ""
    search_path: str = ""
    detail_paths: tuple[str, ...] = ()

    def __init__(
        self,
        cache: ResponseCache,
        limiter: RateLimiter,
        api_key: str | None = None,
        session: Any = None,
    ) -> None:
        self.settings = Settings()
        source = next(
            (
                s for s in self.settings.AVAILABLE_SOURCES
                if s["id"] == self.source_id
            ),
            None,
        )
        if source is None:
            raise ValueError(f"Unknown marketplace: {self.source_id!r}")
        self.label: str = source["label"]
        self.host: str = source["host"]
        self.cache = cache
        self.limiter = limiter
        self.api_key = (
            self.settings.RAPIDAPI_KEY if api_key is None else api_key
        )
        self.logger = logging.getLogger(f"sourcing.{self.source_id}")
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    # ── HTTP ─────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": self.host,
            "Content-Type": "application/json",
        }

    def _raise_for_status(self, status: int, body: str) -> None:
        """Map a non-2xx status onto the error taxonomy."""
        if 200 <= status < 300:
            return
        self.logger.warning(
            "[%s] HTTP %d: %s", self.source_id, status, body[:200]
        )
        if status == 429:
            raise RateLimitedError(self.label)
        if status in (401, 403):
            raise AuthenticationError(self.label, f"HTTP {status}")
        raise UpstreamError(self.label, status, body)

    def _request(
        self, path: str, params: dict[str, Any],
    ) -> dict[str, Any]:
        """Perform one throttled, authenticated GET and decode JSON."""
        if not self.api_key:
            raise AuthenticationError(
                self.label, "RAPIDAPI_KEY is not configured"
            )
        url = f"https://{self.host}/{path}"
        self.limiter.wait()
        self.logger.debug("[%s] GET %s %s", self.source_id, url, params)
        try:
            resp = self.session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            self.logger.error(
                "[%s] Request to %s failed: %s",
                self.source_id,
                url,
                exc,
                exc_info=True,
            )
            raise UpstreamError(self.label, 0, str(exc)) from exc

        self._raise_for_status(resp.status_code, resp.text or "")
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(
                self.label, resp.status_code, "invalid JSON body"
            ) from exc
        return data if isinstance(data, dict) else {"items": data}

    # ── Marketplace-specific hooks ───────────────────────

    @abstractmethod
    def _search_params(
        self,
        query: str,
        page: int,
        page_size: int,
        min_price: float | None,
        max_price: float | None,
        sort_by: str | None,
    ) -> dict[str, Any]:
        """Translate search arguments into upstream query params."""
        ...

    @abstractmethod
    def _extract_items(self, data: dict[str, Any]) -> list[Any]:
        """Return the raw listing list from a search response."""
        ...

    @abstractmethod
    def _extract_total(self, data: dict[str, Any], fallback: int) -> int:
        """Return the upstream total-result count."""
        ...

    @abstractmethod
    def _normalize(self, raw: Any) -> ExternalProduct:
        """Normalise one raw listing."""
        ...

    def _detail_params(self, raw_id: str) -> dict[str, Any]:
        return {"itemId": raw_id}

    def _detail_payload(self, data: dict[str, Any]) -> Any | None:
        """Pick the listing out of a detail response.

        ``None`` means the endpoint answered 200 but reported an error
        in its body, so the next detail endpoint should be tried.
        """
        result = data.get("result")
        if not isinstance(result, dict):
            return None
        status = result.get("status")
        if isinstance(status, dict) and status.get("data") == "error":
            return None
        return result

    # ── Public operations ────────────────────────────────

    def search(
        self,
        query: str,
        page: int = 1,
        page_size: int | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        sort_by: str | None = None,
    ) -> SearchPage:
        """Search the marketplace; results are cached for 15 minutes."""
        page_size = page_size or self.settings.DEFAULT_PAGE_SIZE
        key = make_cache_key(
            f"{self.source_id}:search",
            query=query,
            page=page,
            page_size=page_size,
            min_price=min_price,
            max_price=max_price,
            sort_by=sort_by,
        )
        cached = self.cache.get_cached(key)
        if cached is not None:
            self.logger.info(
                "[%s] Cache hit for '%s' page %d",
                self.source_id,
                query,
                page,
            )
            return cached

        data = self._request(
            self.search_path,
            self._search_params(
                query, page, page_size, min_price, max_price, sort_by
            ),
        )
        items = self._extract_items(data)
        products = [
            normalize_safely(self._normalize, item, self.source_id)
            for item in items
        ]
        total = self._extract_total(data, len(items))
        result = SearchPage(
            products=products,
            total_count=total,
            current_page=page,
            total_pages=max(1, math.ceil(total / page_size)),
        )
        self.logger.info(
            "[%s] '%s' page %d: %d products (%d total)",
            self.source_id,
            query,
            page,
            len(products),
            total,
        )
        self.cache.set_cache(key, result, self.settings.SEARCH_CACHE_TTL)
        return result

    def fetch_raw_details(
        self, product_id: str,
    ) -> dict[str, Any] | None:
        """Return the marketplace's native detail response.

        Detail endpoints are tried in order until one answers with a
        usable body.  Returns ``None`` when every endpoint reports the
        listing missing (404 or an error body).  If none succeeds and at
        least one failed any other way, the most recent of those
        failures is raised, even when a later endpoint answered 404.
        """
        raw_id = product_id.removeprefix(self.id_prefix)
        if not self.detail_paths:
            self.logger.info(
                "[%s] Detail lookup not offered by this marketplace",
                self.source_id,
            )
            return None

        last_error: UpstreamError | None = None
        for path in self.detail_paths:
            try:
                data = self._request(path, self._detail_params(raw_id))
            except UpstreamError as exc:
                if exc.status != 404:
                    last_error = exc
                self.logger.info(
                    "[%s] Detail endpoint %s failed (%s), trying next",
                    self.source_id,
                    path,
                    exc.status,
                )
                continue
            if self._detail_payload(data) is None:
                self.logger.info(
                    "[%s] Detail endpoint %s reported an error body",
                    self.source_id,
                    path,
                )
                continue
            return data

        if last_error is not None:
            raise last_error
        self.logger.info(
            "[%s] Product %s not found", self.source_id, raw_id
        )
        return None

    def get_details(self, product_id: str) -> ExternalProduct | None:
        """Fetch and normalise one listing by id; cached for 4 hours."""
        raw_id = product_id.removeprefix(self.id_prefix)
        key = make_cache_key(
            f"{self.source_id}:details", product_id=raw_id
        )
        cached = self.cache.get_cached(key)
        if cached is not None:
            return cached

        data = self.fetch_raw_details(raw_id)
        if data is None:
            return None
        product = normalize_safely(
            self._normalize, self._detail_payload(data), self.source_id
        )
        self.cache.set_cache(key, product, self.settings.DETAIL_CACHE_TTL)
        return product

    def get_hot_products(
        self, category: str | None = None, limit: int = 10,
    ) -> list[ExternalProduct]:
        """Best-selling listings, optionally narrowed by a category term."""
        key = make_cache_key(
            f"{self.source_id}:hot", category=category, limit=limit
        )
        cached = self.cache.get_cached(key)
        if cached is not None:
            return cached
        page = self.search(
            category or "trending",
            page_size=max(limit, 20),
            sort_by="orders",
        )
        products = page.products[:limit]
        self.cache.set_cache(
            key, products, self.settings.HOT_PRODUCTS_CACHE_TTL
        )
        return products
