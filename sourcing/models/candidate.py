# sourcing/models/candidate.py

"""Import candidates: fetched products awaiting review and commit."""

import copy
import logging
from dataclasses import dataclass, field, fields

from sourcing.models.product import ExternalProduct, Variant

logger = logging.getLogger("sourcing.candidate")


@dataclass
class ImportCandidate(ExternalProduct):
    """A fetched, not-yet-committed product with the user's overrides.

    ``selected_images`` and ``selected_variants`` are ``None`` until the
    user first deselects something; ``None`` reads as "everything".
    Once materialised, a selection set is never allowed to become empty.
    """

    marked: bool = False
    custom_name: str | None = None
    custom_description: str | None = None
    custom_price: float | None = None
    target_collection: str = ""
    target_subcategory: str = ""
    selected_images: set[int] | None = None
    selected_variants: set[str] | None = None
    is_enhancing: bool = False
    ai_enhanced: bool = False

    @classmethod
    def from_product(
        cls,
        product: ExternalProduct,
        **overrides: object,
    ) -> "ImportCandidate":
        """Build a candidate from a normalised product.

        The product's mutable fields are deep-copied so that edits
        to the candidate never leak into cached search results.
        """
        base = {
            f.name: copy.deepcopy(getattr(product, f.name))
            for f in fields(ExternalProduct)
        }
        base.update(overrides)
        return cls(**base)  # type: ignore[arg-type]

    # ── Effective values ─────────────────────────────────

    @property
    def display_name(self) -> str:
        """Name shown and committed: the override when present."""
        return self.custom_name or self.name

    @property
    def display_description(self) -> str:
        """Description shown and committed: the override when present."""
        return self.custom_description or self.description

    # ── Image selection ──────────────────────────────────

    def selected_image_indices(self) -> list[int]:
        """Return the effective image selection, defaulting to all."""
        if self.selected_images is None:
            return list(range(len(self.images)))
        return sorted(
            i for i in self.selected_images if 0 <= i < len(self.images)
        )

    def is_image_selected(self, index: int) -> bool:
        """Whether the image at ``index`` will be committed."""
        return index in self.selected_image_indices()

    def toggle_image(self, index: int) -> bool:
        """Toggle one image in or out of the selection.

        Deselecting the last remaining image is refused.  Returns
        ``True`` when the selection changed.
        """
        if not 0 <= index < len(self.images):
            return False
        current = set(self.selected_image_indices())
        if index in current:
            if len(current) <= 1:
                logger.debug(
                    "Refused to deselect last image of %s", self.id
                )
                return False
            current.discard(index)
        else:
            current.add(index)
        self.selected_images = current
        return True

    def selected_image_urls(self) -> list[str]:
        """Image URLs that will be committed, in original order."""
        return [self.images[i] for i in self.selected_image_indices()]

    # ── Variant selection ────────────────────────────────

    def selected_variant_ids(self) -> list[str]:
        """Return the effective variant selection, defaulting to all."""
        all_ids = [v.id for v in self.variants]
        if self.selected_variants is None:
            return all_ids
        return [vid for vid in all_ids if vid in self.selected_variants]

    def is_variant_selected(self, variant_id: str) -> bool:
        """Whether the variant will be committed."""
        return variant_id in self.selected_variant_ids()

    def toggle_variant(self, variant_id: str) -> bool:
        """Toggle one variant in or out of the selection.

        Deselecting the last remaining variant is refused.  Returns
        ``True`` when the selection changed.
        """
        if variant_id not in {v.id for v in self.variants}:
            return False
        current = set(self.selected_variant_ids())
        if variant_id in current:
            if len(current) <= 1:
                logger.debug(
                    "Refused to deselect last variant of %s", self.id
                )
                return False
            current.discard(variant_id)
        else:
            current.add(variant_id)
        self.selected_variants = current
        return True

    def selected_variant_objects(self) -> list[Variant]:
        """Variants that will be committed, in original order."""
        keep = set(self.selected_variant_ids())
        return [v for v in self.variants if v.id in keep]
