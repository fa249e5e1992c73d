# sourcing/importer/page_scraper.py

"""Scrape a single product page into a tagged payload."""

import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from sourcing.clients.aliexpress_client import AliExpressClient
from sourcing.clients.errors import CatalogError, ScrapeError
from sourcing.clients.normalizers import parse_price
from sourcing.clients.rate_limiter import RateLimiter
from sourcing.config.settings import Settings

logger = logging.getLogger("sourcing.scraper")

_ITEM_PATH_RE = re.compile(r"/item/(\d+)\.html")
_PRODUCT_ID_RE = re.compile(r"productId=(\d+)")


@dataclass(frozen=True)
class SpecializedPayload:
    """A marketplace's native detail response for a recognised URL."""

    source: str
    product_id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class GenericPayload:
    """The handful of fields readable from any page's meta tags."""

    title: str | None
    price: float
    description: str
    image: str | None
    url: str
    currency: str = "USD"


ScrapePayload = SpecializedPayload | GenericPayload


def match_aliexpress_url(url: str) -> str | None:
    """Return the AliExpress item id encoded in ``url``, if any."""
    host = urlparse(url).netloc.lower()
    if "aliexpress" not in host:
        return None
    match = _ITEM_PATH_RE.search(url) or _PRODUCT_ID_RE.search(url)
    return match.group(1) if match else None


def _meta(soup: BeautifulSoup, *names: str) -> str | None:
    """First non-empty ``content`` among meta tags named ``names``."""
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find(
            "meta", attrs={"name": name}
        )
        if tag is None:
            continue
        content = tag.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


def parse_generic_page(html: str, url: str) -> GenericPayload:
    """Read title, price, description and image from meta tags.

    Raises :class:`ScrapeError` when neither a title nor an image
    can be found.
    """
    soup = BeautifulSoup(html, "lxml")
    title = _meta(soup, "og:title", "twitter:title")
    if title is None and soup.title and soup.title.string:
        title = soup.title.string.strip() or None
    image = _meta(soup, "og:image", "twitter:image")
    if not title and not image:
        raise ScrapeError(f"Could not extract meaningful data from {url}")
    return GenericPayload(
        title=title,
        price=parse_price(
            _meta(soup, "og:price:amount", "product:price:amount")
        ),
        description=_meta(
            soup, "og:description", "description", "twitter:description"
        ) or "",
        image=image,
        url=url,
        currency=_meta(
            soup, "og:price:currency", "product:price:currency"
        ) or "USD",
    )


class PageScraper:
    """Fetch a product URL and classify what came back.

    AliExpress item URLs are answered from the marketplace's detail
    API; anything else is downloaded and read from its meta tags,
    falling back to cloudscraper when the page is challenge-protected.
    """

    def __init__(
        self,
        aliexpress: AliExpressClient,
        limiter: RateLimiter,
        session: Any = None,
    ) -> None:
        self.settings = Settings()
        self.aliexpress = aliexpress
        self.limiter = limiter
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def scrape(self, url: str) -> ScrapePayload:
        """Scrape ``url``; raises :class:`ScrapeError` on failure."""
        product_id = match_aliexpress_url(url)
        if product_id is not None:
            return self._scrape_aliexpress(product_id)
        return parse_generic_page(self._fetch_html(url), url)

    def _scrape_aliexpress(self, product_id: str) -> SpecializedPayload:
        try:
            data = self.aliexpress.fetch_raw_details(product_id)
        except CatalogError as exc:
            raise ScrapeError(str(exc)) from exc
        if data is None:
            raise ScrapeError(
                f"AliExpress product {product_id} was not found"
            )
        logger.info("Fetched AliExpress item %s", product_id)
        return SpecializedPayload(
            source="aliexpress", product_id=product_id, data=data
        )

    def _fetch_html(self, url: str) -> str:
        """GET a page via curl_cffi, then cloudscraper as a fallback."""
        self.limiter.wait()
        status = 0
        try:
            resp = self.session.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
            status = resp.status_code
            if status == 200:
                return str(resp.text)
            logger.warning("HTTP %d fetching %s", status, url)
        except Exception as exc:
            logger.warning(
                "curl_cffi failed fetching %s: %s", url, exc, exc_info=True
            )

        logger.info("Falling back to cloudscraper for %s", url)
        try:
            scraper: Any = cloudscraper.create_scraper()
            fallback: Any = scraper.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
            if fallback.status_code == 200:
                return str(fallback.text)
            status = fallback.status_code
        except Exception as exc:
            logger.error(
                "cloudscraper fallback also failed for %s: %s",
                url,
                exc,
                exc_info=True,
            )
        raise ScrapeError(f"Failed to load page: {status or 'no response'}")
