# sourcing/workflow/commit.py

"""Map reviewed candidates onto catalog products and history records."""

import logging
from datetime import datetime

from sourcing.config.settings import Settings
from sourcing.models.candidate import ImportCandidate
from sourcing.models.collection import Collection, resolve_subcategory_label
from sourcing.models.import_record import ImportRecord
from sourcing.models.product import CatalogProduct
from sourcing.pricing.engine import PricingRule, compute_sale_price

logger = logging.getLogger("sourcing.commit")


def final_price(candidate: ImportCandidate, rule: PricingRule) -> float:
    """The override price when set, else the rule applied to cost."""
    if candidate.custom_price is not None:
        return candidate.custom_price
    return compute_sale_price(candidate.cost_price, rule)


def to_catalog_product(
    candidate: ImportCandidate,
    rule: PricingRule,
    collections: list[Collection],
    default_collection: str = Settings.DEFAULT_COLLECTION,
) -> CatalogProduct:
    """Build the catalog record for one candidate."""
    collection = candidate.target_collection or default_collection
    variants = candidate.selected_variant_objects()
    return CatalogProduct(
        name=candidate.display_name,
        price=final_price(candidate, rule),
        description=candidate.display_description,
        images=candidate.selected_image_urls(),
        category=resolve_subcategory_label(
            collections,
            collection,
            candidate.target_subcategory,
            candidate.category,
        ),
        collection=collection,
        is_new=True,
        in_stock=candidate.in_stock,
        variants=variants or None,
        source_url=candidate.product_url or None,
    )


def build_catalog_products(
    candidates: list[ImportCandidate],
    rule: PricingRule,
    collections: list[Collection],
    default_collection: str = Settings.DEFAULT_COLLECTION,
) -> list[CatalogProduct]:
    """Catalog records for every marked candidate, in list order."""
    products = [
        to_catalog_product(c, rule, collections, default_collection)
        for c in candidates
        if c.marked
    ]
    logger.debug("Prepared %d catalog products", len(products))
    return products


def build_import_records(
    candidates: list[ImportCandidate],
    products: list[CatalogProduct],
    catalog_ids: list[str],
    rule: PricingRule,
    imported_at: datetime | None = None,
) -> list[ImportRecord]:
    """Pair committed candidates with their new catalog ids."""
    now = imported_at or datetime.now()
    return [
        ImportRecord(
            source_id=candidate.id,
            catalog_id=catalog_id,
            original_name=candidate.name,
            imported_name=product.name,
            original_price=candidate.cost_price,
            imported_price=product.price,
            markup=rule.value,
            markup_kind=rule.kind.value,
            collection=product.collection,
            ai_enhanced=candidate.ai_enhanced,
            imported_at=now,
        )
        for candidate, product, catalog_id in zip(
            candidates, products, catalog_ids
        )
    ]
