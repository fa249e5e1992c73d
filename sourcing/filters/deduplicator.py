# sourcing/filters/deduplicator.py

"""Listing deduplication across marketplaces and result pages."""

import logging

from sourcing.models.product import ExternalProduct

logger = logging.getLogger("sourcing.filters")


class ProductDeduplicator:
    """Remove repeated listings by marketplace-qualified id."""

    @staticmethod
    def deduplicate(
        products: list[ExternalProduct],
    ) -> tuple[list[ExternalProduct], int]:
        """Keep the first occurrence of every id.

        Returns the deduplicated list and the count of removed dupes.
        """
        seen: set[str] = set()
        kept: list[ExternalProduct] = []
        for product in products:
            if product.id in seen:
                continue
            seen.add(product.id)
            kept.append(product)

        removed = len(products) - len(kept)
        if removed:
            logger.info(
                "Deduplication removed %d duplicate listings", removed
            )
        return kept, removed
