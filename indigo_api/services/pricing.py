"""Pricing rules.

- Listing base price from a cloth's score and grade
- Shop slot / inventory expansion costs
- Storefront discount display math (percent off, savings)
- Coupon application
"""

from dataclasses import dataclass
import math

from indigo_api.errors import ValidationError
from indigo_api.services.game_rules import (
    DEFAULT_LISTING_SLOTS,
    INVENTORY_EXPANSION_COST,
    INVENTORY_EXPANSION_SLOTS,
    MAX_LISTING_SLOTS,
)

GRADE_MULTIPLIERS: dict[str, int] = {
    "SSS": 15,
    "SS": 10,
    "S": 7,
    "A": 5,
    "B": 3,
    "C": 1,
}

LISTING_EXPANSION_BASE_COST = 300
LISTING_EXPANSION_STEP_COST = 100


# ============================================================
# Game economy
# ============================================================


def base_price(total_score: int, grade: str) -> int:
    """Reference price of a cloth: score times the grade multiplier."""
    return math.floor(total_score * GRADE_MULTIPLIERS.get(grade, 1) + 0.5)


def suggested_price_range(base: int) -> tuple[int, int]:
    """Price range shown to the seller when listing (80%-150% of base, at least 1)."""
    low = max(1, math.floor(base * 0.8))
    high = max(low, math.ceil(base * 1.5))
    return low, high


def listing_expansion_cost(current_slots: int) -> int:
    """Cost of the next listing slot given the current slot count."""
    return LISTING_EXPANSION_BASE_COST + max(0, current_slots - DEFAULT_LISTING_SLOTS) * LISTING_EXPANSION_STEP_COST


def next_listing_expansion_cost(current_slots: int) -> int | None:
    """Like listing_expansion_cost, but None once the slot cap is reached."""
    if current_slots >= MAX_LISTING_SLOTS:
        return None
    return listing_expansion_cost(current_slots)


def inventory_expansion() -> tuple[int, int]:
    """(cost, slots) of one inventory expansion."""
    return INVENTORY_EXPANSION_COST, INVENTORY_EXPANSION_SLOTS


# ============================================================
# Storefront display math
# ============================================================


def _has_discount(price: float, original_price: float | None) -> bool:
    return original_price is not None and original_price > 0 and original_price > price


def discount_percent(price: float, original_price: float | None) -> int | None:
    """Whole-number percent off (e.g. 80 vs 100 -> 20), None when not discounted."""
    if not _has_discount(price, original_price):
        return None
    return math.floor((1 - price / original_price) * 100 + 0.5)


def savings(price: float, original_price: float | None) -> float | None:
    """Amount saved against the original price, None when not discounted."""
    if not _has_discount(price, original_price):
        return None
    return round(original_price - price, 2)


@dataclass(frozen=True)
class Coupon:
    """A discount coupon.

    kind: "percent" (value is 0-100) or "fixed" (value is an amount).
    """

    kind: str
    value: float
    min_spend: float = 0


def apply_coupon(amount: float, coupon: Coupon) -> float:
    """Apply a coupon to an order amount.

    Raises:
        ValidationError: If the minimum spend is not met or the coupon is malformed.
    """
    if amount < coupon.min_spend:
        raise ValidationError(
            f"Coupon requires a minimum spend of {coupon.min_spend}",
            field="coupon",
            user_message=f"满 {coupon.min_spend:g} 元可用",
        )
    if coupon.kind == "percent":
        if not 0 <= coupon.value <= 100:
            raise ValidationError("Percent coupon must be between 0 and 100", field="coupon")
        discounted = amount * (1 - coupon.value / 100)
    elif coupon.kind == "fixed":
        if coupon.value < 0:
            raise ValidationError("Fixed coupon must not be negative", field="coupon")
        discounted = amount - coupon.value
    else:
        raise ValidationError(f"Unknown coupon kind: {coupon.kind}", field="coupon")
    return round(max(0.0, discounted), 2)
