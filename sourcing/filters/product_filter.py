# sourcing/filters/product_filter.py

"""Client-side filtering and ordering of aggregated listings."""

import logging

from sourcing.models.product import ExternalProduct

logger = logging.getLogger("sourcing.filters")

SORT_OPTIONS: tuple[str, ...] = (
    "default", "price_asc", "price_desc", "orders", "rating",
)


class ProductFilter:
    """Filter listings by price and rating, then sort them.

    Upstream APIs do not honour price or rating filters uniformly, so
    every aggregated result set passes through here.
    """

    @staticmethod
    def filter_by_price(
        products: list[ExternalProduct],
        min_price: float | None = None,
        max_price: float | None = None,
    ) -> tuple[list[ExternalProduct], int]:
        """Keep products whose cost price lies within the bounds.

        Returns the filtered list and the count of excluded products.
        """
        if min_price is None and max_price is None:
            return products, 0
        kept = [
            p for p in products
            if (min_price is None or p.cost_price >= min_price)
            and (max_price is None or p.cost_price <= max_price)
        ]
        excluded = len(products) - len(kept)
        if excluded:
            logger.info(
                "Filtered out %d products outside price range", excluded
            )
        return kept, excluded

    @staticmethod
    def filter_by_rating(
        products: list[ExternalProduct],
        min_rating: float | None,
    ) -> tuple[list[ExternalProduct], int]:
        """Keep products with ``average_rating >= min_rating``."""
        if not min_rating:
            return products, 0
        kept = [p for p in products if p.average_rating >= min_rating]
        excluded = len(products) - len(kept)
        if excluded:
            logger.info(
                "Filtered out %d products rated below %.1f",
                excluded,
                min_rating,
            )
        return kept, excluded

    @staticmethod
    def sort(
        products: list[ExternalProduct],
        sort_by: str | None,
    ) -> list[ExternalProduct]:
        """Order products; unknown or ``default`` keeps source order."""
        if sort_by == "price_asc":
            return sorted(products, key=lambda p: p.cost_price)
        if sort_by == "price_desc":
            return sorted(products, key=lambda p: p.cost_price, reverse=True)
        if sort_by == "orders":
            return sorted(products, key=lambda p: p.review_count, reverse=True)
        if sort_by == "rating":
            return sorted(
                products, key=lambda p: p.average_rating, reverse=True
            )
        return list(products)
