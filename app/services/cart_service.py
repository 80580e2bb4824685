"""
CartService - per-user shopping cart

Each user owns at most one cart, created lazily on first access. Lines are
keyed by (product, normalized attributes): adding the same product with the
same attributes bumps the quantity, different attributes get a new line.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, StateError, UnavailableError, ValidationError
from app.core.utils import to_money
from app.models import Cart, CartItem, Coupon, Product, ProductStatus
from app.services.pricing import compute_subtotal

logger = logging.getLogger(__name__)

ATTRIBUTE_KEYS = ("size", "color", "material")


def normalize_attributes(attributes: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep the known attribute keys with non-empty values."""
    attributes = attributes or {}
    return {
        key: attributes[key]
        for key in ATTRIBUTE_KEYS
        if attributes.get(key) not in (None, "")
    }


def can_add_to_cart(product: Product) -> bool:
    """
    A product can be added when it is active and published and, if its
    quantity is tracked, has stock or accepts backorders.
    """
    if product.status != ProductStatus.ACTIVE.value or not product.is_published:
        return False
    if product.track_quantity and (product.stock or 0) <= 0 and not product.allow_backorder:
        return False
    return True


class CartService:

    @staticmethod
    async def get_cart(db: AsyncSession, user_id: int) -> Optional[Cart]:
        result = await db.execute(select(Cart).where(Cart.user_id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_cart(db: AsyncSession, user_id: int) -> Cart:
        cart = await CartService.get_cart(db, user_id)
        if cart is None:
            cart = Cart(
                user_id=user_id,
                shipping_method="standard",
                shipping_cost=settings.SHIPPING_RATES.get("standard", Decimal("0")),
                tax_rate=settings.DEFAULT_TAX_RATE,
                items=[],
            )
            db.add(cart)
            await db.flush()
            logger.info("cart_created user_id=%s cart_id=%s", user_id, cart.id)
        return cart

    @staticmethod
    async def add_item(
        db: AsyncSession,
        user_id: int,
        product_id: int,
        quantity: int = 1,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Cart:
        if quantity < 1:
            raise ValidationError(
                "Quantity must be at least 1",
                errors=[{"field": "quantity", "message": "must be >= 1"}],
            )

        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        if not can_add_to_cart(product):
            raise UnavailableError("Product is not available", details={"product_id": product_id})

        cart = await CartService.get_or_create_cart(db, user_id)
        attributes = normalize_attributes(attributes)

        existing = next(
            (
                item for item in cart.items
                if item.product_id == product_id
                and normalize_attributes(item.attributes) == attributes
            ),
            None,
        )
        if existing:
            existing.quantity += quantity
        else:
            cart.items.append(CartItem(
                product_id=product.id,
                product=product,
                quantity=quantity,
                price=product.price,
                attributes=attributes,
            ))

        await db.flush()
        logger.info(
            "cart_item_added user_id=%s product_id=%s quantity=%s",
            user_id, product_id, quantity,
        )
        return cart

    @staticmethod
    def _find_line(cart: Cart, product_id: int, attributes: Optional[Dict[str, Any]] = None) -> Optional[CartItem]:
        """First line for the product, or the line with exactly these attributes when given."""
        wanted = normalize_attributes(attributes) if attributes is not None else None
        for item in cart.items:
            if item.product_id != product_id:
                continue
            if wanted is None or normalize_attributes(item.attributes) == wanted:
                return item
        return None

    @staticmethod
    async def set_quantity(
        db: AsyncSession,
        user_id: int,
        product_id: int,
        quantity: int,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Cart:
        """Set the quantity of a line; zero or less removes it."""
        cart = await CartService.get_or_create_cart(db, user_id)
        item = CartService._find_line(cart, product_id, attributes)
        if item is None:
            raise NotFoundError("Product not in cart", details={"product_id": product_id})

        if quantity <= 0:
            cart.items.remove(item)
        else:
            item.quantity = quantity
        await db.flush()
        return cart

    @staticmethod
    async def remove_item(
        db: AsyncSession,
        user_id: int,
        product_id: int,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Cart:
        return await CartService.set_quantity(db, user_id, product_id, 0, attributes)

    @staticmethod
    async def clear(db: AsyncSession, user_id: int) -> Cart:
        cart = await CartService.get_or_create_cart(db, user_id)
        cart.items.clear()
        cart.clear_coupon()
        await db.flush()
        logger.info("cart_cleared user_id=%s cart_id=%s", user_id, cart.id)
        return cart

    @staticmethod
    async def check_coupon(db: AsyncSession, code: str, subtotal: Decimal) -> Coupon:
        """The active, unexpired coupon for code whose minimum the subtotal meets."""
        result = await db.execute(select(Coupon).where(Coupon.code == code))
        coupon = result.scalar_one_or_none()
        if coupon is None or not coupon.is_active:
            raise NotFoundError("Invalid coupon code", details={"code": code})
        if coupon.is_expired:
            raise StateError("Coupon has expired", details={"code": code})

        min_subtotal = to_money(coupon.min_subtotal)
        if subtotal < min_subtotal:
            raise StateError(
                f"Cart subtotal must be at least {min_subtotal}",
                details={"code": code, "min_subtotal": float(min_subtotal)},
            )
        return coupon

    @staticmethod
    async def apply_coupon(db: AsyncSession, user_id: int, code: str) -> Cart:
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError(
                "Coupon code is required",
                errors=[{"field": "code", "message": "required"}],
            )

        cart = await CartService.get_or_create_cart(db, user_id)
        coupon = await CartService.check_coupon(db, code, compute_subtotal(cart.items))

        cart.coupon_code = coupon.code
        cart.coupon_discount = coupon.value
        cart.coupon_type = coupon.discount_type
        await db.flush()
        logger.info("coupon_applied user_id=%s code=%s", user_id, code)
        return cart

    @staticmethod
    async def remove_coupon(db: AsyncSession, user_id: int) -> Cart:
        cart = await CartService.get_or_create_cart(db, user_id)
        cart.clear_coupon()
        await db.flush()
        return cart

    @staticmethod
    async def set_shipping(
        db: AsyncSession,
        user_id: int,
        method: str,
        address: Optional[Dict[str, Any]] = None,
    ) -> Cart:
        rates = settings.SHIPPING_RATES
        if method not in rates:
            raise ValidationError(
                f"Unknown shipping method '{method}'",
                errors=[{"field": "method", "message": f"must be one of {', '.join(sorted(rates))}"}],
            )

        cart = await CartService.get_or_create_cart(db, user_id)
        cart.shipping_method = method
        cart.shipping_cost = rates[method]
        if address is not None:
            cart.shipping_address = address
        await db.flush()
        return cart


cart_service = CartService()
