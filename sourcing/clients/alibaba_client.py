# sourcing/clients/alibaba_client.py

"""Alibaba Datahub client."""

from typing import Any

from sourcing.clients.base_client import BaseCatalogClient
from sourcing.clients.normalizers import (
    dig,
    first_present,
    normalize_alibaba_item,
    parse_int,
)
from sourcing.models.product import ExternalProduct


class AlibabaClient(BaseCatalogClient):
    """Client for the Alibaba Datahub API.

    The wholesale search endpoint has no price or sort parameters;
    those are applied client-side by the aggregator.
    """

    source_id = "alibaba"
    id_prefix = "ab_"
    search_path = "item_search"
    detail_paths = ("item_detail",)

    def _search_params(
        self,
        query: str,
        page: int,
        page_size: int,
        min_price: float | None,
        max_price: float | None,
        sort_by: str | None,
    ) -> dict[str, Any]:
        return {"q": query, "page": str(page)}

    def _extract_items(self, data: dict[str, Any]) -> list[Any]:
        items = dig(data, "result", "resultList")
        return items if isinstance(items, list) else []

    def _extract_total(self, data: dict[str, Any], fallback: int) -> int:
        total = first_present(
            dig(data, "result", "base", "totalResults"),
            dig(data, "result", "totalCount"),
        )
        return parse_int(total) if total else fallback

    def _normalize(self, raw: Any) -> ExternalProduct:
        return normalize_alibaba_item(raw)
