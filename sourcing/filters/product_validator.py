# sourcing/filters/product_validator.py

"""Drop listings that cannot become a sensible catalog entry."""

import logging

from sourcing.models.product import ExternalProduct

logger = logging.getLogger("sourcing.filters")


class ProductValidator:
    """Validate normalised listings before they are shown."""

    @staticmethod
    def validate(
        products: list[ExternalProduct],
    ) -> tuple[list[ExternalProduct], int]:
        """Drop products with blank names or non-positive prices.

        Returns the valid products and the count of dropped items.
        """
        valid: list[ExternalProduct] = []
        dropped = 0

        for product in products:
            if not product.name.strip():
                logger.debug(
                    "Dropped listing with empty name (id=%s)", product.id
                )
                dropped += 1
                continue
            if product.cost_price <= 0:
                logger.debug(
                    "Dropped listing with non-positive price "
                    "(name=%s, source=%s)",
                    product.name,
                    product.source,
                )
                dropped += 1
                continue
            valid.append(product)

        if dropped:
            logger.info("Validation dropped %d invalid listings", dropped)

        return valid, dropped
