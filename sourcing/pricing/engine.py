# sourcing/pricing/engine.py

"""Markup rules that turn a supplier cost into a suggested sale price."""

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from enum import Enum

_CENT = Decimal("0.01")


class MarkupKind(str, Enum):
    """How the markup value is applied to the cost."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class PricingRule:
    """A markup of ``value`` percent or currency units on top of cost.

    With ``round_up`` the price is lifted to the next whole unit and
    then dropped by one cent, so it always ends in ``.99``.
    """

    kind: MarkupKind = MarkupKind.PERCENTAGE
    value: float = 0.0
    round_up: bool = False


DEFAULT_PRICING_RULE = PricingRule(MarkupKind.PERCENTAGE, 45, True)


def compute_sale_price(cost: float, rule: PricingRule) -> float:
    """Apply ``rule`` to ``cost``; never negative.

    Arithmetic runs on :class:`~decimal.Decimal` so that results such
    as ``100 * 1.45`` are exact before the charm rounding.
    """
    base = Decimal(str(cost))
    value = Decimal(str(rule.value))
    if rule.kind is MarkupKind.FIXED:
        price = base + value
    else:
        price = base * (1 + value / 100)

    if rule.round_up:
        if price <= _CENT:
            price = Decimal(0)
        else:
            price = price.to_integral_value(rounding=ROUND_CEILING) - _CENT

    return float(max(price, Decimal(0)))


def describe_rule(rule: PricingRule) -> str:
    """One-line summary for status bars, e.g. ``+45% markup, .99``."""
    if rule.kind is MarkupKind.FIXED:
        text = f"+${rule.value:g} markup"
    else:
        text = f"+{rule.value:g}% markup"
    if rule.round_up:
        text += ", .99"
    return text
