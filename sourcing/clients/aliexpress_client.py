# sourcing/clients/aliexpress_client.py

"""AliExpress Datahub client."""

from typing import Any

from sourcing.clients.base_client import BaseCatalogClient
from sourcing.clients.normalizers import (
    dig,
    first_present,
    normalize_aliexpress_item,
    parse_int,
)
from sourcing.models.product import ExternalProduct

_SORT_PARAMS: dict[str, str] = {
    "price_asc": "price_asc",
    "price_desc": "price_desc",
    "orders": "orders",
}


class AliExpressClient(BaseCatalogClient):
    """Client for the AliExpress Datahub API."""

    source_id = "aliexpress"
    id_prefix = "ali_"
    search_path = "item_search_3"
    detail_paths = ("item_detail_2", "item_detail_3", "item_detail")

    def _search_params(
        self,
        query: str,
        page: int,
        page_size: int,
        min_price: float | None,
        max_price: float | None,
        sort_by: str | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": query,
            "page": str(page),
            "limit": str(page_size),
        }
        if min_price:
            params["startPrice"] = str(min_price)
        if max_price:
            params["endPrice"] = str(max_price)
        if sort_by in _SORT_PARAMS:
            params["sort"] = _SORT_PARAMS[sort_by]
        return params

    def _extract_items(self, data: dict[str, Any]) -> list[Any]:
        items = first_present(
            dig(data, "result", "resultList"),
            dig(data, "result", "items"),
            data.get("items"),
            data.get("resultList"),
        )
        return items if isinstance(items, list) else []

    def _extract_total(self, data: dict[str, Any], fallback: int) -> int:
        total = first_present(
            dig(data, "result", "base", "totalResults"),
            dig(data, "result", "totalCount"),
            dig(data, "result", "total_count"),
            data.get("total"),
        )
        return parse_int(total) if total else fallback

    def _normalize(self, raw: Any) -> ExternalProduct:
        return normalize_aliexpress_item(raw)
