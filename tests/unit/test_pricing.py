from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.pricing import compute_discount, compute_totals


def line(price, quantity):
    return SimpleNamespace(price=Decimal(price), quantity=quantity)


def test_documented_checkout_example():
    """20.00 x 2, 10% coupon, 8% tax, 5.00 shipping -> 43.88"""
    totals = compute_totals(
        [line("20.00", 2)],
        coupon={"code": "SAVE10", "discount": Decimal("10"), "type": "percentage"},
        tax_rate=Decimal("8"),
        shipping_cost=Decimal("5.00"),
    )
    assert totals.subtotal == Decimal("40.00")
    assert totals.discount == Decimal("4.00")
    assert totals.tax == Decimal("2.88")
    assert totals.shipping == Decimal("5.00")
    assert totals.total == Decimal("43.88")
    assert totals.item_count == 2


@pytest.mark.parametrize(
    "prices, coupon, tax_rate, shipping",
    [
        ([("19.99", 3), ("0.35", 7)], {"code": "P15", "discount": "15", "type": "percentage"}, "7.25", "4.99"),
        ([("9.99", 1)], {"code": "F5", "discount": "5", "type": "fixed"}, "21", "0"),
        ([("1.01", 3)], None, "8.875", "15.00"),
    ],
)
def test_total_identity_holds_exactly(prices, coupon, tax_rate, shipping):
    totals = compute_totals([line(p, q) for p, q in prices], coupon, tax_rate, shipping)
    assert totals.total == totals.subtotal - totals.discount + totals.tax + totals.shipping
    for part in (totals.subtotal, totals.discount, totals.tax, totals.total):
        assert part == part.quantize(Decimal("0.01"))


def test_no_coupon_code_means_no_discount():
    assert compute_discount(Decimal("50.00"), None) == Decimal("0.00")
    assert compute_discount(Decimal("50.00"), {"code": "", "discount": 10, "type": "fixed"}) == Decimal("0.00")


def test_fixed_coupon_is_clamped_to_subtotal():
    coupon = {"code": "BIG", "discount": Decimal("100"), "type": "fixed"}
    totals = compute_totals([line("30.00", 1)], coupon)
    assert totals.discount == Decimal("30.00")
    assert totals.total == Decimal("0.00")


def test_empty_cart_totals_are_zero_plus_shipping():
    totals = compute_totals([], shipping_cost=Decimal("5.00"))
    assert totals.subtotal == Decimal("0.00")
    assert totals.total == Decimal("5.00")
    assert totals.item_count == 0
