"""
Cart routes

Every response carries the cart with its derived totals, recomputed from
the line items on each read.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.responses import success_response
from app.core.database import get_db
from app.models.cart import Cart
from app.models.user import User
from app.schemas.cart import (
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
    CouponApply,
    CouponSnapshot,
    ShippingUpdate,
)
from app.services.cart_service import CartService
from app.services.pricing import cart_totals

router = APIRouter()


def build_cart_response(cart: Cart) -> CartResponse:
    totals = cart_totals(cart)
    coupon = cart.coupon
    return CartResponse(
        id=cart.id,
        items=[CartItemResponse.model_validate(item) for item in cart.items],
        coupon=CouponSnapshot(**coupon) if coupon else None,
        shipping_address=cart.shipping_address,
        shipping_method=cart.shipping_method,
        shipping_cost=totals.shipping,
        tax_rate=cart.tax_rate or 0,
        subtotal=totals.subtotal,
        discount_amount=totals.discount,
        tax_amount=totals.tax,
        total=totals.total,
        item_count=totals.item_count,
    )


@router.get("/")
async def get_cart(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    cart = await CartService.get_or_create_cart(db, current_user.id)
    await db.commit()
    return success_response(build_cart_response(cart))


@router.delete("/")
async def clear_cart(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    cart = await CartService.clear(db, current_user.id)
    await db.commit()
    return success_response(build_cart_response(cart), message="Cart cleared")


@router.post("/items")
async def add_item(
    item: CartItemCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    attributes = item.attributes.model_dump() if item.attributes else None
    cart = await CartService.add_item(db, current_user.id, item.product_id, item.quantity, attributes)
    await db.commit()
    return success_response(build_cart_response(cart), message="Product added to cart")


@router.put("/items/{product_id}")
async def update_item(
    product_id: int,
    update: CartItemUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    attributes = update.attributes.model_dump() if update.attributes else None
    cart = await CartService.set_quantity(db, current_user.id, product_id, update.quantity, attributes)
    await db.commit()
    return success_response(build_cart_response(cart), message="Cart updated")


@router.delete("/items/{product_id}")
async def remove_item(
    product_id: int,
    size: Optional[str] = Query(None, description="Size of the line to remove"),
    color: Optional[str] = Query(None, description="Color of the line to remove"),
    material: Optional[str] = Query(None, description="Material of the line to remove"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    # Without a selector the first line of the product goes
    selector = {"size": size, "color": color, "material": material}
    if not any(selector.values()):
        selector = None
    cart = await CartService.remove_item(db, current_user.id, product_id, selector)
    await db.commit()
    return success_response(build_cart_response(cart), message="Product removed from cart")


@router.post("/coupon")
async def apply_coupon(
    payload: CouponApply,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    cart = await CartService.apply_coupon(db, current_user.id, payload.code)
    await db.commit()
    return success_response(build_cart_response(cart), message="Coupon applied")


@router.delete("/coupon")
async def remove_coupon(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    cart = await CartService.remove_coupon(db, current_user.id)
    await db.commit()
    return success_response(build_cart_response(cart), message="Coupon removed")


@router.put("/shipping")
async def set_shipping(
    payload: ShippingUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    address = payload.address.model_dump() if payload.address else None
    cart = await CartService.set_shipping(db, current_user.id, payload.method, address)
    await db.commit()
    return success_response(build_cart_response(cart), message="Shipping updated")
