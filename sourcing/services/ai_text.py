# sourcing/services/ai_text.py

"""Narrow client for the AI copywriting capability (Gemini REST API)."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from curl_cffi import requests as curl_requests

from sourcing.clients.errors import EnhancementError
from sourcing.clients.rate_limiter import RateLimiter
from sourcing.config.settings import Settings

logger = logging.getLogger("sourcing.ai")

_KEYWORD_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE)
    for p in (
        # materials
        r"\b(cotton|linen|silk|velvet|denim|wool|polyester|chiffon|"
        r"satin|muslin|organic|bamboo|cashmere|fleece|knit|woven|"
        r"rattan|oak|walnut|wood|leather|suede)\b",
        # styles
        r"\b(floral|striped|solid|printed|embroidered|lace|ruffle|"
        r"pleated|vintage|boho|minimalist|modern|classic|elegant|"
        r"casual|formal)\b",
        # seasons and occasions
        r"\b(summer|winter|spring|fall|autumn|party|wedding|beach|"
        r"office|everyday|holiday|festive)\b",
        # garments
        r"\b(dress|romper|onesie|bodysuit|jumpsuit|blouse|top|shirt|"
        r"pants|skirt|shorts|jacket|cardigan|sweater|coat)\b",
        # age groups
        r"\b(baby|infant|toddler|kids|children|girls|boys|newborn|"
        r"0-3m|3-6m|6-12m|1-2y|2-3y)\b",
    )
]

_PRODUCT_TYPES: list[tuple[str, str]] = [
    (r"romper|onesie|bodysuit|baby|infant|newborn", "baby romper/bodysuit"),
    (r"dress", "dress"),
    (r"blouse|top", "blouse/top"),
    (r"pants|trousers", "pants"),
    (r"skirt", "skirt"),
    (r"cardigan|sweater", "knitwear"),
    (r"chair|seat", "chair"),
    (r"table|desk", "table"),
    (r"sofa|couch", "sofa"),
    (r"cabinet|buffet|sideboard", "storage furniture"),
    (r"vase|planter|pot", "vessel/planter"),
    (r"basket|storage", "basket"),
    (r"lamp|light", "lighting"),
    (r"rug|carpet", "rug"),
    (r"mirror", "mirror"),
]

_NAME_STYLES: dict[str, str] = {
    "kids": "playful, sweet, whimsical (Poppy, Birdie, Rosie)",
    "fashion": "elegant, nature-inspired (Sienna, Willow, Maeve)",
}
_DEFAULT_NAME_STYLE = "Nordic, feminine (Astrid, Linnea, Freya)"


@dataclass
class EnhancementRequest:
    """What the copywriter is told about a product."""

    original_name: str
    original_description: str = ""
    category: str = ""
    collection: str = ""
    keywords: list[str] = field(default_factory=lambda: list[str]())


@dataclass
class EnhancementResult:
    """Rewritten fields; ``None`` means keep the original."""

    name: str | None = None
    description: str | None = None


def extract_keywords(text: str) -> list[str]:
    """Pull material, style, occasion, garment and age terms from text.

    Returns lower-cased keywords, de-duplicated in first-seen order.
    """
    if not text:
        return []
    found: list[str] = []
    for pattern in _KEYWORD_PATTERNS:
        found.extend(m.lower() for m in pattern.findall(text))
    return list(dict.fromkeys(found))


def detect_product_type(request: EnhancementRequest) -> str:
    """Best-effort product type used to steer the copy."""
    text = " ".join(
        (request.original_name, request.original_description, request.category)
    ).lower()
    for pattern, label in _PRODUCT_TYPES:
        if re.search(pattern, text):
            return label
    return {
        "kids": "kids item",
        "fashion": "fashion item",
        "furniture": "furniture piece",
    }.get(request.collection, "home item")


def is_placeholder_text(text: str | None) -> bool:
    """Whether generated text is empty or known fallback boilerplate."""
    if not text or not text.strip():
        return True
    return any(marker in text for marker in Settings.AI_PLACEHOLDER_MARKERS)


class AiTextClient:
    """Requests rewritten product names and descriptions.

    Failures (no key, transport error, non-2xx, empty answer) raise
    :class:`EnhancementError`; callers downgrade them to warnings.
    """

    def __init__(
        self,
        api_key: str | None = None,
        limiter: RateLimiter | None = None,
        session: Any = None,
    ) -> None:
        self.settings = Settings()
        self.api_key = (
            self.settings.GEMINI_API_KEY if api_key is None else api_key
        )
        self.limiter = limiter
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    def _generate(
        self, instruction: str, prompt: str, temperature: float,
    ) -> str:
        if not self.api_key:
            raise EnhancementError("GEMINI_API_KEY is not configured")
        if self.limiter is not None:
            self.limiter.wait()
        url = self.settings.AI_ENDPOINT.format(model=self.settings.AI_MODEL)
        payload = {
            "systemInstruction": {"parts": [{"text": instruction}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature},
        }
        try:
            resp = self.session.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            logger.warning("AI request failed: %s", exc, exc_info=True)
            raise EnhancementError(f"AI service unreachable: {exc}") from exc

        if resp.status_code != 200:
            logger.warning(
                "AI request returned HTTP %d: %s",
                resp.status_code,
                (resp.text or "")[:200],
            )
            raise EnhancementError(f"AI service error {resp.status_code}")

        try:
            data = resp.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EnhancementError("AI service returned no text") from exc
        text = str(text).strip().strip("\"'").strip()
        if not text:
            raise EnhancementError("AI service returned no text")
        return text

    def generate_name(self, request: EnhancementRequest) -> str:
        """A short boutique-style product name."""
        keywords = request.keywords or extract_keywords(
            f"{request.original_name} {request.original_description}"
        )
        style = _NAME_STYLES.get(request.collection, _DEFAULT_NAME_STYLE)
        instruction = (
            "You name products for a lifestyle boutique.\n"
            f'Original name: "{request.original_name}"\n'
            f"Product type: {detect_product_type(request)}\n"
            f"Keywords: {', '.join(keywords) or 'none'}\n"
            f"Name style: {style}\n"
            "Use one first name plus the product type, 2-3 words, "
            'no "The" prefix. Return only the name.'
        )
        name = self._generate(
            instruction,
            f"Generate a boutique name for this {request.collection} item.",
            0.7,
        )
        return re.sub(r"^The\s+", "", name, flags=re.IGNORECASE)

    def generate_description(self, request: EnhancementRequest) -> str:
        """A one or two sentence boutique-style description."""
        keywords = request.keywords or extract_keywords(
            f"{request.original_name} {request.original_description}"
        )
        product_type = detect_product_type(request)
        instruction = (
            "You write copy for a lifestyle boutique.\n"
            f'Name: "{request.original_name}"\n'
            f"Type: {product_type}\n"
            f"Collection: {request.collection}\n"
            f"Keywords: {', '.join(keywords) or 'none'}\n"
            f'Source hints: "{request.original_description[:200] or "none"}"\n'
            "Write 1-2 sentences (25-40 words) about materials, fit "
            "or craftsmanship. Avoid generic phrases such as "
            '"high quality" or "perfect for". Return only the description.'
        )
        return self._generate(
            instruction,
            f"Write a boutique description for this {product_type}.",
            0.85,
        )

    def enhance(
        self,
        request: EnhancementRequest,
        fields: frozenset[str] = frozenset({"name", "description"}),
    ) -> EnhancementResult:
        """Generate the requested fields in order (name first)."""
        result = EnhancementResult()
        if "name" in fields:
            result.name = self.generate_name(request)
        if "description" in fields:
            result.description = self.generate_description(request)
        logger.info(
            "Enhanced '%s' (%s)",
            request.original_name,
            ", ".join(sorted(fields)),
        )
        return result
