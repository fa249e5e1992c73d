# sourcing/models/product.py

"""Product data models for inter-module data flow."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class Variant:
    """A purchasable option of a product (size, colour, quantity tier)."""

    id: str
    name: str
    image: str | None = None
    price_adjustment: float = 0.0
    in_stock: bool = True


@dataclass
class SellerInfo:
    """Reputation summary of the marketplace seller."""

    id: str = ""
    name: str = ""
    rating: float = 0.0
    feedback_score: int = 0


@dataclass
class ShippingInfo:
    """Shipping summary as reported by the marketplace."""

    free_shipping: bool = False
    estimated_days: str = ""
    cost: float = 0.0


@dataclass
class ExternalProduct:
    """A single listing normalised from any marketplace payload."""

    id: str
    name: str
    price: float
    original_price: float = 0.0
    sale_price: float = 0.0
    description: str = ""
    images: list[str] = field(
        default_factory=lambda: list[str]()
    )
    category: str = ""
    source: str = ""
    variants: list[Variant] = field(
        default_factory=lambda: list[Variant]()
    )
    seller: SellerInfo = field(default_factory=SellerInfo)
    average_rating: float = 0.0
    review_count: int = 0
    shipping: ShippingInfo = field(default_factory=ShippingInfo)
    product_url: str = ""
    in_stock: bool = True

    @property
    def cost_price(self) -> float:
        """Price the markup is applied to (sale price, else list price)."""
        return self.sale_price or self.price


@dataclass
class SearchPage:
    """One page of search results from a single marketplace."""

    products: list[ExternalProduct]
    total_count: int
    current_page: int
    total_pages: int


@dataclass
class CatalogProduct:
    """A finalised product ready to be written to the local catalog."""

    name: str
    price: float
    description: str
    images: list[str]
    category: str
    collection: str
    is_new: bool = True
    in_stock: bool = True
    variants: list[Variant] | None = None
    source_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict, omitting unset optional fields."""
        data = asdict(self)
        if self.variants is None:
            data.pop("variants")
        if self.source_url is None:
            data.pop("source_url")
        return data
