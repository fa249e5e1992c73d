# sourcing/clients/aliexpress_true_client.py

"""AliExpress True API (affiliate feed) client."""

from typing import Any

from sourcing.clients.base_client import BaseCatalogClient
from sourcing.clients.normalizers import (
    first_present,
    normalize_aliexpress_true_item,
    parse_int,
)
from sourcing.models.product import ExternalProduct


class AliExpressTrueClient(BaseCatalogClient):
    """Client for the AliExpress True API.

    The feed is search-only; detail lookups return ``None``.
    """

    source_id = "aliexpress_true"
    id_prefix = "aet_"
    search_path = "api/v3/search"

    def _search_params(
        self,
        query: str,
        page: int,
        page_size: int,
        min_price: float | None,
        max_price: float | None,
        sort_by: str | None,
    ) -> dict[str, Any]:
        return {
            "keywords": query,
            "page": str(page),
            "target_currency": "USD",
            "target_language": "EN",
        }

    def _extract_items(self, data: dict[str, Any]) -> list[Any]:
        items = first_present(data.get("products"), data.get("items"))
        return items if isinstance(items, list) else []

    def _extract_total(self, data: dict[str, Any], fallback: int) -> int:
        total = first_present(
            data.get("total_record_count"), data.get("totalCount")
        )
        return parse_int(total) if total else fallback

    def _normalize(self, raw: Any) -> ExternalProduct:
        return normalize_aliexpress_true_item(raw)
