# sourcing/clients/normalizers.py

"""Normalise raw marketplace payloads into :class:`ExternalProduct`.

Upstream APIs rename fields between versions and endpoints, so every
value is looked up through an ordered list of candidate field names and
falls back to a safe default.  Nothing in this module raises on bad
input: a malformed listing turns into zero prices, an empty description
and the placeholder image instead of aborting a whole result page.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from sourcing.config.settings import Settings
from sourcing.models.product import (
    ExternalProduct,
    SellerInfo,
    ShippingInfo,
    Variant,
)

logger = logging.getLogger("sourcing.normalize")

_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
_LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?|\.\d+")

Normalizer = Callable[[Any], ExternalProduct]


# ── Field helpers ────────────────────────────────────────


def parse_price(value: Any) -> float:
    """Extract a number from values like ``'US $1,299.00'``.

    Every character other than digits and ``.`` is stripped before
    parsing; anything unparseable yields ``0.0``.
    """
    if value is None or value is False or value == "":
        return 0.0
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    match = _LEADING_NUMBER_RE.match(cleaned)
    return float(match.group(0)) if match else 0.0


def parse_price_range(value: Any) -> float:
    """Parse the lower bound of a range like ``'59.8-63.6'``."""
    if value is None:
        return 0.0
    return parse_price(str(value).split("-")[0])


def parse_int(value: Any) -> int:
    """Parse an integer count such as ``'1,024 sold'``; ``0`` on failure."""
    return int(parse_price(value))


def secure_url(url: Any) -> str:
    """Rewrite protocol-relative ``//host/path`` URLs to https."""
    if not url:
        return ""
    text = str(url)
    if text.startswith("//"):
        return f"https:{text}"
    return text


def first_present(*values: Any) -> Any:
    """Return the first truthy value, or ``None`` when all are empty."""
    for value in values:
        if value:
            return value
    return None


def dig(data: Any, *path: str) -> Any:
    """Safely walk nested dicts; returns ``None`` on any missing hop."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def ensure_images(images: list[str]) -> list[str]:
    """Guarantee a non-empty image list (placeholder fallback)."""
    cleaned = [img for img in images if img]
    return cleaned or [Settings.PLACEHOLDER_IMAGE]


def is_clothing(name: str) -> bool:
    """Whether a product name suggests a sized clothing item."""
    lowered = name.lower()
    return any(term in lowered for term in Settings.CLOTHING_KEYWORDS)


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


# ── Variant extraction ───────────────────────────────────


def _prop_values(prop: dict[str, Any]) -> list[Any]:
    return _as_list(
        first_present(prop.get("values"), prop.get("attrValues"))
    )


def _value_name(val: Any) -> str:
    if isinstance(val, dict):
        return str(
            first_present(
                val.get("name"), val.get("attrValue"), val.get("value")
            )
            or ""
        )
    return str(val)


def _value_image(val: Any) -> str:
    if not isinstance(val, dict):
        return ""
    return secure_url(
        first_present(
            val.get("image"), val.get("skuImage"), val.get("img")
        )
    )


def _build_prop_table(
    props: list[Any],
) -> dict[str, tuple[str, str, str]]:
    """Map ``propId:valueId`` codes to (prop name, value name, image)."""
    table: dict[str, tuple[str, str, str]] = {}
    for prop in props:
        if not isinstance(prop, dict):
            continue
        prop_id = first_present(
            prop.get("id"), prop.get("attrNameId"), prop.get("pid")
        )
        prop_name = str(
            first_present(prop.get("name"), prop.get("attrName"))
            or "Option"
        )
        for val in _prop_values(prop):
            if not isinstance(val, dict):
                continue
            value_id = first_present(
                val.get("id"), val.get("attrValueId"), val.get("vid")
            )
            if prop_id and value_id:
                table[f"{prop_id}:{value_id}"] = (
                    prop_name,
                    _value_name(val),
                    _value_image(val),
                )
    return table


def _variants_from_sku_list(
    sku_list: list[Any],
    props: list[Any],
    base_price: float,
) -> list[Variant]:
    table = _build_prop_table(props)
    variants: list[Variant] = []
    for index, sku in enumerate(sku_list):
        if not isinstance(sku, dict):
            continue
        image = secure_url(
            first_present(sku.get("image"), dig(sku, "skuVal", "image"))
        )
        name = ""
        prop_path = str(
            first_present(sku.get("propPath"), sku.get("skuAttr")) or ""
        )
        if prop_path:
            parts: list[str] = []
            for pair in re.split(r"[;,]", prop_path):
                code = ":".join(pair.split(":")[:2]).split("#")[0]
                mapped = table.get(code)
                if mapped:
                    parts.append(f"{mapped[0]}: {mapped[1]}")
                    image = image or mapped[2]
            name = " / ".join(parts)
        if not name:
            attributes = _as_list(sku.get("attributes"))
            name = str(
                first_present(
                    sku.get("name"),
                    " / ".join(
                        f"{a.get('name') or 'Option'}: {a.get('value')}"
                        for a in attributes
                        if isinstance(a, dict)
                    ),
                    prop_path,
                )
                or f"Option {index + 1}"
            )
        variant_price = parse_price(
            first_present(
                sku.get("promotionPrice"),
                sku.get("price"),
                dig(sku, "skuVal", "skuCalPrice"),
            )
        )
        variants.append(
            Variant(
                id=str(
                    first_present(sku.get("skuId"), sku.get("sku_id"))
                    or f"var_{index}"
                ),
                name=name,
                image=image or None,
                price_adjustment=(
                    round(variant_price - base_price, 2)
                    if variant_price
                    else 0.0
                ),
                in_stock=(
                    sku.get("available") is not False
                    and sku.get("stock") != 0
                ),
            )
        )
    return variants


def _variants_from_props(props: list[Any]) -> list[Variant]:
    variants: list[Variant] = []
    for prop in props:
        if not isinstance(prop, dict):
            continue
        prop_name = str(
            first_present(prop.get("name"), prop.get("attrName"))
            or "Option"
        )
        for index, val in enumerate(_prop_values(prop)):
            value_id = (
                first_present(val.get("id"), val.get("attrValueId"))
                if isinstance(val, dict)
                else None
            )
            image = _value_image(val)
            variants.append(
                Variant(
                    id=str(value_id or f"{prop_name}_{index}"),
                    name=f"{prop_name}: {_value_name(val)}",
                    image=image or None,
                )
            )
    return variants


def _clothing_size_variants(name: str) -> list[Variant]:
    if not is_clothing(name):
        return []
    return [
        Variant(id=f"size_{size.lower()}", name=f"Size: {size}")
        for size in Settings.SIZE_LADDER
    ]


def extract_variants(
    item: dict[str, Any],
    base_price: float,
    product_name: str,
) -> list[Variant]:
    """Synthesise variants in priority order.

    1. explicit SKU list (``propPath`` codes decoded via the props table)
    2. attribute/property list (one variant per value)
    3. clothing size ladder when the name looks like apparel
    4. no variants
    """
    sku_data = first_present(
        item.get("sku"), item.get("skuInfo"), item.get("variants")
    )
    if not isinstance(sku_data, dict):
        sku_data = {}
    sku_list = _as_list(
        first_present(
            sku_data.get("skuList"),
            sku_data.get("sku_list"),
            sku_data.get("list"),
        )
    )
    props = _as_list(
        first_present(sku_data.get("props"), sku_data.get("properties"))
    )

    variants = _variants_from_sku_list(sku_list, props, base_price)
    if not variants:
        variants = _variants_from_props(props)
    if not variants:
        variants = _clothing_size_variants(product_name)
    return variants


# ── Per-marketplace normalisers ──────────────────────────


def normalize_aliexpress_item(wrapper: Any) -> ExternalProduct:
    """Normalise an AliExpress Datahub search hit or detail result.

    Search hits and detail results both wrap the listing in ``item``;
    delivery details sit next to it on the wrapper.
    """
    wrapper = wrapper if isinstance(wrapper, dict) else {}
    raw = wrapper.get("item")
    if not isinstance(raw, dict):
        raw = wrapper

    sale_price = parse_price(
        first_present(
            dig(raw, "sku", "def", "promotionPrice"),
            dig(raw, "sku", "def", "price"),
            raw.get("salePrice"),
            raw.get("sale_price"),
            dig(raw, "price", "salePrice"),
            raw.get("minPrice"),
        )
    )
    original_price = parse_price(
        first_present(
            dig(raw, "sku", "def", "price"),
            raw.get("originalPrice"),
            raw.get("original_price"),
        )
    ) or sale_price

    product_id = str(
        first_present(
            raw.get("itemId"),
            raw.get("item_id"),
            raw.get("product_id"),
            raw.get("productId"),
            raw.get("id"),
        )
        or ""
    )
    name = str(
        first_present(
            raw.get("title"),
            raw.get("subject"),
            raw.get("product_title"),
            raw.get("name"),
        )
        or "Unnamed Product"
    )

    images: list[str] = []
    for single in (raw.get("image"), raw.get("imageUrl")):
        if single and isinstance(single, str):
            images.append(secure_url(single))
    for img in _as_list(raw.get("images")):
        if isinstance(img, str):
            images.append(secure_url(img))

    delivery = wrapper.get("delivery")
    if not isinstance(delivery, dict):
        delivery = {}

    return ExternalProduct(
        id=f"ali_{product_id}",
        name=name,
        price=sale_price,
        original_price=original_price,
        sale_price=sale_price,
        description=str(raw.get("description") or ""),
        images=ensure_images(images),
        category=str(
            first_present(
                raw.get("categoryName"), raw.get("category_name")
            )
            or Settings.DEFAULT_CATEGORY_LABEL
        ),
        source="aliexpress",
        variants=extract_variants(raw, sale_price, name),
        seller=SellerInfo(
            id=str(
                first_present(
                    raw.get("sellerId"),
                    raw.get("seller_id"),
                    raw.get("shopId"),
                )
                or ""
            ),
            name=str(
                first_present(
                    raw.get("shopName"),
                    raw.get("store_name"),
                    raw.get("sellerName"),
                )
                or "AliExpress Seller"
            ),
            rating=parse_price(
                first_present(
                    raw.get("shopRating"),
                    raw.get("seller_rating"),
                    raw.get("store_rating"),
                )
            ),
            feedback_score=parse_int(
                first_present(
                    raw.get("feedbackScore"), raw.get("feedback_score")
                )
            ),
        ),
        average_rating=parse_price(
            first_present(
                raw.get("averageStarRate"),
                raw.get("evaluate"),
                raw.get("rating"),
            )
        ),
        review_count=parse_int(
            first_present(
                raw.get("sales"),
                raw.get("totalOrders"),
                raw.get("orders"),
            )
        ),
        shipping=ShippingInfo(
            free_shipping=bool(
                first_present(
                    delivery.get("freeShipping"),
                    raw.get("freeShipping"),
                )
            ),
            estimated_days=str(
                delivery.get("deliveryTime")
                or Settings.DEFAULT_ESTIMATED_DELIVERY
            ),
            cost=parse_price(delivery.get("shippingFee")),
        ),
        product_url=secure_url(
            first_present(
                raw.get("itemUrl"),
                raw.get("productUrl"),
                raw.get("product_url"),
                raw.get("url"),
            )
        ),
    )


def normalize_alibaba_item(wrapper: Any) -> ExternalProduct:
    """Normalise an Alibaba Datahub search hit.

    Alibaba quotes wholesale price ranges and quantity tiers; the
    lower bound is the unit price and each tier becomes a variant.
    """
    wrapper = wrapper if isinstance(wrapper, dict) else {}
    raw = wrapper.get("item")
    if not isinstance(raw, dict):
        raw = wrapper

    price_module = dig(raw, "sku", "def", "priceModule")
    if not isinstance(price_module, dict):
        price_module = {}
    price_list = _as_list(price_module.get("priceList"))

    price = 0.0
    if price_module.get("price"):
        price = parse_price_range(price_module.get("price"))
    elif price_list and isinstance(price_list[0], dict):
        price = parse_price(price_list[0].get("price"))

    name = str(raw.get("title") or "Unknown Product")
    main_image = secure_url(raw.get("image"))
    images = [
        secure_url(img)
        for img in _as_list(raw.get("images"))
        if isinstance(img, str)
    ] or [main_image]

    variants: list[Variant] = []
    for index, tier in enumerate(price_list):
        if not isinstance(tier, dict):
            continue
        tier_price = parse_price(tier.get("price"))
        quantity = tier.get("quantity")
        variants.append(
            Variant(
                id=f"qty_{index}",
                name=(
                    f"Qty: {quantity}+"
                    if quantity
                    else f"Option {index + 1}"
                ),
                price_adjustment=round(tier_price - price, 2),
            )
        )
    sku_data = raw.get("sku") if isinstance(raw.get("sku"), dict) else {}
    props = _as_list(
        first_present(
            sku_data.get("props"),
            sku_data.get("properties"),
            raw.get("skuProps"),
        )
    )
    variants.extend(_variants_from_props(props))
    if not variants:
        variants = _clothing_size_variants(name)

    return ExternalProduct(
        id=f"ab_{raw.get('itemId') or ''}",
        name=name,
        price=price,
        original_price=price,
        sale_price=price,
        images=ensure_images(images),
        category=Settings.DEFAULT_CATEGORY_LABEL,
        source="alibaba",
        variants=variants,
        average_rating=parse_price(raw.get("averageStarRate")),
        review_count=parse_int(raw.get("sales")),
        product_url=secure_url(raw.get("itemUrl")),
    )


def normalize_aliexpress_true_item(raw: Any) -> ExternalProduct:
    """Normalise an AliExpress True API (affiliate) search hit.

    ``evaluate_rate`` is a positive-feedback percentage; it is scaled
    to the five-star range used by the other marketplaces.
    """
    raw = raw if isinstance(raw, dict) else {}
    sale_price = parse_price(
        first_present(
            raw.get("target_sale_price"),
            raw.get("sale_price"),
            raw.get("original_price"),
        )
    )
    original_price = parse_price(raw.get("original_price")) or sale_price
    small_images = dig(raw, "product_small_image_urls", "string")
    images = [
        secure_url(img)
        for img in _as_list(small_images)
        if isinstance(img, str)
    ]
    main_image = secure_url(raw.get("product_main_image_url"))
    if main_image and main_image not in images:
        images.insert(0, main_image)

    rating = parse_price(raw.get("evaluate_rate"))
    if rating > 5:
        rating = round(rating / 20, 2)

    name = str(
        first_present(raw.get("product_title"), raw.get("title"))
        or "Unknown Product"
    )
    return ExternalProduct(
        id=(
            "aet_"
            f"{first_present(raw.get('product_id'), raw.get('itemId')) or ''}"
        ),
        name=name,
        price=sale_price,
        original_price=original_price,
        sale_price=sale_price,
        images=ensure_images(images),
        category=str(
            raw.get("second_level_category_name")
            or raw.get("first_level_category_name")
            or Settings.DEFAULT_CATEGORY_LABEL
        ),
        source="aliexpress_true",
        variants=_clothing_size_variants(name),
        average_rating=rating,
        review_count=parse_int(raw.get("lastest_volume")),
        product_url=secure_url(raw.get("product_detail_url")),
    )


def normalize_safely(
    normalizer: Normalizer,
    raw: Any,
    source: str,
) -> ExternalProduct:
    """Run a normaliser, degrading to a placeholder listing on failure."""
    try:
        return normalizer(raw)
    except Exception as exc:
        logger.warning(
            "[%s] Normalisation failed, using fallback listing: %s",
            source,
            exc,
            exc_info=True,
        )
        return ExternalProduct(
            id=f"{source}_unknown",
            name="Unnamed Product",
            price=0.0,
            images=[Settings.PLACEHOLDER_IMAGE],
            category=Settings.DEFAULT_CATEGORY_LABEL,
            source=source,
        )
