"""
Cart pricing

Pure functions: totals are derived from line items, coupon, tax rate and
shipping cost on every read and never persisted. Each component is
quantized to cents and the total is built from the quantized parts, so
total == subtotal - discount + tax + shipping holds exactly.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Mapping, Any

from app.core.utils import to_money

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def _dec(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    item_count: int


def compute_subtotal(items: Iterable[Any]) -> Decimal:
    """Σ(unit price × quantity) over objects exposing .price and .quantity"""
    return to_money(sum((_dec(item.price) * item.quantity for item in items), ZERO))


def compute_discount(subtotal: Decimal, coupon: Optional[Mapping[str, Any]]) -> Decimal:
    """
    percentage -> subtotal * pct / 100
    fixed      -> min(amount, subtotal)
    no coupon code -> 0
    """
    if not coupon or not coupon.get("code"):
        return ZERO

    value = _dec(coupon.get("discount"))
    if coupon.get("type") == "percentage":
        return to_money(subtotal * value / HUNDRED)
    return to_money(min(value, subtotal))


def compute_tax(subtotal: Decimal, discount: Decimal, tax_rate) -> Decimal:
    return to_money((subtotal - discount) * _dec(tax_rate) / HUNDRED)


def compute_totals(
    items: Iterable[Any],
    coupon: Optional[Mapping[str, Any]] = None,
    tax_rate=0,
    shipping_cost=0,
) -> CartTotals:
    items = list(items)
    subtotal = compute_subtotal(items)
    discount = compute_discount(subtotal, coupon)
    tax = compute_tax(subtotal, discount, tax_rate)
    shipping = to_money(shipping_cost)
    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        shipping=shipping,
        total=subtotal - discount + tax + shipping,
        item_count=sum(item.quantity for item in items),
    )


def cart_totals(cart) -> CartTotals:
    """Totals for a Cart model instance."""
    return compute_totals(
        cart.items,
        coupon=cart.coupon,
        tax_rate=cart.tax_rate,
        shipping_cost=cart.shipping_cost,
    )
