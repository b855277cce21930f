import pytest

from indigo_api.errors import ValidationError
from indigo_api.services.pricing import (
    Coupon,
    apply_coupon,
    base_price,
    discount_percent,
    listing_expansion_cost,
    next_listing_expansion_cost,
    savings,
    suggested_price_range,
)


def test_base_price_uses_grade_multiplier():
    assert base_price(90, "SS") == 900
    assert base_price(85, "S") == 595
    assert base_price(50, "unknown") == 50


def test_suggested_price_range():
    assert suggested_price_range(100) == (80, 150)
    assert suggested_price_range(1) == (1, 2)
    assert suggested_price_range(0) == (1, 1)


def test_listing_expansion_cost_grows_per_slot():
    assert listing_expansion_cost(5) == 300
    assert listing_expansion_cost(7) == 500
    assert next_listing_expansion_cost(19) == 1700
    assert next_listing_expansion_cost(20) is None


def test_discount_display_math():
    assert discount_percent(80, 100) == 20
    assert discount_percent(128, 168) == 24
    assert savings(128, 168) == 40.0


@pytest.mark.parametrize("price,original", [(100, None), (100, 80), (100, 100), (100, 0)])
def test_no_discount(price, original):
    assert discount_percent(price, original) is None
    assert savings(price, original) is None


def test_percent_coupon():
    assert apply_coupon(200, Coupon(kind="percent", value=10)) == 180.0


def test_fixed_coupon_never_goes_negative():
    assert apply_coupon(100, Coupon(kind="fixed", value=150)) == 0.0


def test_coupon_minimum_spend():
    with pytest.raises(ValidationError) as exc:
        apply_coupon(100, Coupon(kind="fixed", value=10, min_spend=200))
    assert exc.value.field == "coupon"


@pytest.mark.parametrize(
    "coupon",
    [Coupon(kind="percent", value=120), Coupon(kind="fixed", value=-1), Coupon(kind="bogus", value=1)],
)
def test_malformed_coupons(coupon):
    with pytest.raises(ValidationError):
        apply_coupon(100, coupon)
