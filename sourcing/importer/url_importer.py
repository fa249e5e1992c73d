# sourcing/importer/url_importer.py

"""Turn an arbitrary product URL into a priced, marked import candidate."""

import logging
import uuid
from dataclasses import dataclass, field

from sourcing.clients.errors import EnhancementError
from sourcing.clients.normalizers import normalize_aliexpress_item
from sourcing.config.settings import Settings
from sourcing.importer.page_scraper import (
    GenericPayload,
    PageScraper,
    ScrapePayload,
    SpecializedPayload,
)
from sourcing.models.candidate import ImportCandidate
from sourcing.models.product import ExternalProduct
from sourcing.pricing.engine import (
    DEFAULT_PRICING_RULE,
    PricingRule,
    compute_sale_price,
)
from sourcing.services.ai_text import (
    AiTextClient,
    EnhancementRequest,
    extract_keywords,
    is_placeholder_text,
)

logger = logging.getLogger("sourcing.importer")

ENHANCEABLE_FIELDS: frozenset[str] = frozenset({"name", "description"})


@dataclass
class ImportOutcome:
    """The imported candidate plus any soft warnings raised on the way."""

    candidate: ImportCandidate
    warnings: list[str] = field(default_factory=lambda: list[str]())


def enhance_candidate(
    ai: AiTextClient,
    candidate: ImportCandidate,
    fields: frozenset[str] = ENHANCEABLE_FIELDS,
) -> list[str]:
    """Rewrite a candidate's name and/or description with the AI service.

    The prompt is always built from the listing's original text and the
    result replaces the current override, so repeating it never stacks.
    Boilerplate answers are discarded.  Failures leave the candidate
    untouched and come back as warnings.
    """
    unknown = set(fields) - ENHANCEABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot enhance fields: {sorted(unknown)}")

    request = EnhancementRequest(
        original_name=candidate.name,
        original_description=candidate.description,
        category=candidate.category,
        collection=candidate.target_collection,
        keywords=extract_keywords(
            f"{candidate.name} {candidate.description}"
        ),
    )
    warnings: list[str] = []
    candidate.is_enhancing = True
    try:
        result = ai.enhance(request, frozenset(fields))
    except EnhancementError as exc:
        logger.warning("Enhancement of %s failed: %s", candidate.id, exc)
        return [f"AI enhancement failed: {exc}"]
    finally:
        candidate.is_enhancing = False

    if "name" in fields:
        if is_placeholder_text(result.name):
            warnings.append("AI returned a generic name; kept the original")
        else:
            candidate.custom_name = result.name
            candidate.ai_enhanced = True
    if "description" in fields:
        if is_placeholder_text(result.description):
            warnings.append(
                "AI returned a generic description; kept the original"
            )
        else:
            candidate.custom_description = result.description
            candidate.ai_enhanced = True
    return warnings


class UrlImporter:
    """Scrape a URL, normalise whatever came back and price it."""

    def __init__(
        self,
        scraper: PageScraper,
        ai: AiTextClient | None = None,
        rule: PricingRule = DEFAULT_PRICING_RULE,
    ) -> None:
        self.scraper = scraper
        self.ai = ai
        self.rule = rule

    @staticmethod
    def _from_specialized(
        payload: SpecializedPayload, url: str,
    ) -> ExternalProduct:
        result = payload.data.get("result")
        product = normalize_aliexpress_item(
            result if isinstance(result, dict) else payload.data
        )
        if not product.product_url:
            product.product_url = url
        return product

    @staticmethod
    def _from_generic(payload: GenericPayload) -> ExternalProduct:
        # A single scraped image field cannot be padded with a
        # placeholder, so an empty list is allowed here.
        return ExternalProduct(
            id=f"url_{uuid.uuid4().hex[:12]}",
            name=payload.title or "Unknown Product",
            price=payload.price,
            original_price=payload.price,
            sale_price=payload.price,
            description=payload.description,
            images=[payload.image] if payload.image else [],
            source="generic",
            product_url=payload.url,
        )

    def to_product(self, payload: ScrapePayload, url: str) -> ExternalProduct:
        """Dispatch on the payload type."""
        if isinstance(payload, SpecializedPayload):
            return self._from_specialized(payload, url)
        if isinstance(payload, GenericPayload):
            return self._from_generic(payload)
        raise TypeError(f"Unsupported scrape payload: {type(payload)!r}")

    def import_from_url(
        self,
        url: str,
        enhance: bool = False,
        collection: str | None = None,
        rule: PricingRule | None = None,
    ) -> ImportOutcome:
        """Import one product page.

        Scrape failures propagate as :class:`ScrapeError`; AI problems
        are only reported in ``warnings``.
        """
        rule = rule or self.rule
        payload = self.scraper.scrape(url)
        product = self.to_product(payload, url)
        candidate = ImportCandidate.from_product(
            product,
            marked=True,
            custom_price=compute_sale_price(product.cost_price, rule),
            target_collection=collection or Settings.DEFAULT_COLLECTION,
        )
        outcome = ImportOutcome(candidate=candidate)
        logger.info(
            "Imported '%s' from %s (%s)",
            candidate.name,
            url,
            product.source,
        )

        if enhance:
            if self.ai is None:
                outcome.warnings.append(
                    "AI enhancement is not configured; imported as-is"
                )
            else:
                outcome.warnings.extend(enhance_candidate(self.ai, candidate))
        return outcome
