"""Priority-ordered evaluation of price override rules."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from .models import PriceOverrideRule

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def resolve_price(
    rules: Iterable[PriceOverrideRule],
    base_price,
    *,
    product_id: Optional[str],
    category_id: Optional[str],
    customer_id: Optional[str],
) -> Decimal:
    """Apply ``rules`` (already sorted by priority, highest first) to ``base_price``.

    A matching fixed-price rule wins outright and stops evaluation. A matching
    percent rule replaces the running price with ``base × (1 − pct/100)`` and
    evaluation continues, so percentages never stack: the last applicable
    percent rule in priority order determines the result. The outcome is
    clamped at zero and rounded to cents.
    """
    base = to_decimal(base_price)
    final_price = base

    for rule in rules:
        if not rule.applies_to(product_id, category_id, customer_id):
            continue
        if rule.is_fixed:
            if rule.fixed_price is None:
                continue
            final_price = to_decimal(rule.fixed_price)
            break
        if rule.discount_percent is not None:
            final_price = base * (1 - to_decimal(rule.discount_percent) / HUNDRED)

    if final_price < 0:
        final_price = Decimal("0")
    return final_price.quantize(CENT, rounding=ROUND_HALF_UP)
