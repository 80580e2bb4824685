"""
OrderService - checkout, stock reservation and order lifecycle

Single place where product stock is mutated. Every decrement is a
conditional UPDATE evaluated by the database, so two orders racing for the
last unit cannot both succeed no matter how stale their in-memory product
rows are.

Lifecycle:
    pending -> confirmed -> processing -> shipped -> delivered
    pending | confirmed -> cancelled
    refunded is reached only through PaymentService.refund()
"""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    EmptyCartError,
    NotFoundError,
    StateError,
    StockError,
    ValidationError,
)
from app.core.utils import utcnow
from app.models import Order, OrderItem, OrderStatus, PaymentStatus, Product, User
from app.services.cart_service import CartService
from app.services.pricing import cart_totals

logger = logging.getLogger(__name__)

ORDER_FLOW: List[str] = [
    OrderStatus.PENDING.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
]

TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.REFUNDED.value,
})

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value})

SYNC = {"synchronize_session": False}


def can_transition(current: str, target: str) -> bool:
    """
    Whether an admin may move an order from current to target.

    Forward moves along ORDER_FLOW may skip steps; cancelled is reachable
    from pending/confirmed; refunded is never set directly.
    """
    if current in TERMINAL_STATUSES or current == target:
        return False
    if target == OrderStatus.CANCELLED.value:
        return current in CANCELLABLE_STATUSES
    if target not in ORDER_FLOW or current not in ORDER_FLOW:
        return False
    return ORDER_FLOW.index(target) > ORDER_FLOW.index(current)


def _json_money(value) -> Optional[float]:
    return float(value) if value is not None else None


class OrderService:
    """Order creation and state changes."""

    @staticmethod
    def generate_order_number() -> str:
        """Generate unique order number in format ORD-YYYYMMDD-XXXXXXXXXX."""
        return f"ORD-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{uuid.uuid4().hex[:10].upper()}"

    @staticmethod
    async def create_from_cart(
        db: AsyncSession,
        user: User,
        payment_method: str,
        shipping_address: Optional[Dict[str, Any]] = None,
        billing_address: Optional[Dict[str, Any]] = None,
        customer_notes: Optional[str] = None,
    ) -> Order:
        """
        Snapshot the user's cart into a pending order and empty the cart.

        Line items copy name, image, sku, unit price and attributes; totals
        are copied from the cart's derived values, never recomputed later.
        An applied coupon must still be valid for the cart's subtotal.
        """
        start = time.monotonic()
        cart = await CartService.get_cart(db, user.id)
        if cart is None or not cart.items:
            raise EmptyCartError("Cart is empty")

        totals = cart_totals(cart)
        shipping = shipping_address or cart.shipping_address
        billing = billing_address or shipping

        coupon = cart.coupon
        if coupon:
            # The cart may have shrunk, or the coupon lapsed, since it was applied
            await CartService.check_coupon(db, coupon["code"], totals.subtotal)
            coupon = {
                "code": coupon["code"],
                "discount": _json_money(coupon["discount"]),
                "type": coupon["type"],
            }

        order = Order(
            order_number=OrderService.generate_order_number(),
            user_id=user.id,
            customer_info={
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "phone": user.phone,
            },
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping,
            tax_amount=totals.tax,
            discount_amount=totals.discount,
            total_amount=totals.total,
            shipping_address=shipping,
            billing_address=billing,
            shipping_method=cart.shipping_method or "standard",
            payment_method=payment_method,
            customer_notes=customer_notes,
            coupon=coupon,
            stock_reserved=False,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    product_name=item.product.name,
                    product_image=item.product.primary_image_url,
                    sku=item.product.sku,
                    unit_price=item.price,
                    quantity=item.quantity,
                    attributes=dict(item.attributes or {}),
                    reserved_quantity=0,
                )
                for item in cart.items
            ],
        )
        db.add(order)

        cart.items.clear()
        cart.clear_coupon()
        await db.flush()

        logger.info(
            "order_created order_number=%s user_id=%s items=%d total=%s duration_ms=%.2f",
            order.order_number,
            user.id,
            len(order.items),
            order.total_amount,
            (time.monotonic() - start) * 1000,
        )
        return order

    @staticmethod
    async def _load_products(db: AsyncSession, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Fetch live product rows, overwriting any stale copies in the session."""
        ids = sorted({pid for pid in product_ids if pid is not None})
        if not ids:
            return {}
        result = await db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return {product.id: product for product in result.scalars().all()}

    @staticmethod
    async def check_stock(db: AsyncSession, order: Order) -> Dict[int, Product]:
        """
        Validation pass over every line before anything is mutated.

        Raises NotFoundError when a product is gone and StockError when a
        tracked, non-backorderable product has less stock than ordered.
        """
        products = await OrderService._load_products(db, (i.product_id for i in order.items))
        for item in order.items:
            product = products.get(item.product_id)
            if product is None:
                raise NotFoundError(
                    f"Product {item.product_name} no longer exists",
                    details={"sku": item.sku},
                )
            if product.track_quantity and not product.allow_backorder and product.stock < item.quantity:
                raise StockError(
                    f"Insufficient stock for {product.name}",
                    sku=product.sku,
                    requested_qty=item.quantity,
                    available_qty=product.stock,
                )
        return products

    @staticmethod
    async def reserve(db: AsyncSession, order: Order) -> Order:
        """
        Take stock for every line of a pending order and confirm it.

        All-or-nothing: the decrements run inside a savepoint, so a line that
        loses its conditional UPDATE undoes the lines before it and the
        session is left as it was. Reserving an already reserved order is a
        no-op.
        """
        if order.stock_reserved:
            return order
        if order.status != OrderStatus.PENDING.value:
            raise StateError(
                f"Cannot reserve stock for a {order.status} order",
                current=order.status,
                requested=OrderStatus.CONFIRMED.value,
            )

        start = time.monotonic()
        products = await OrderService.check_stock(db, order)

        async with db.begin_nested():
            for item in order.items:
                item.reserved_quantity = await OrderService._take_stock(
                    db, order, products[item.product_id], item.quantity,
                )

            order.stock_reserved = True
            order.status = OrderStatus.CONFIRMED.value
            await db.flush()

        await OrderService._load_products(db, products.keys())

        logger.info(
            "order_reserved order_number=%s lines=%d duration_ms=%.2f",
            order.order_number,
            len(order.items),
            (time.monotonic() - start) * 1000,
        )
        return order

    @staticmethod
    async def _take_stock(db: AsyncSession, order: Order, product: Product, quantity: int) -> int:
        """Decrement one product for one line; returns the units actually taken."""
        sold = Product.sales_count + quantity

        if not product.track_quantity:
            await db.execute(
                update(Product)
                .where(Product.id == product.id)
                .values(sales_count=sold)
                .execution_options(**SYNC)
            )
            return 0

        if product.allow_backorder:
            locked = await db.execute(
                select(Product.stock).where(Product.id == product.id).with_for_update()
            )
            taken = min(locked.scalar_one(), quantity)
            await db.execute(
                update(Product)
                .where(Product.id == product.id)
                .values(stock=Product.stock - taken, sales_count=sold)
                .execution_options(**SYNC)
            )
            return taken

        result = await db.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity, sales_count=sold)
            .returning(Product.stock)
            .execution_options(**SYNC)
        )
        if result.first() is None:
            logger.warning(
                "stock_reservation_lost order_number=%s sku=%s requested=%d",
                order.order_number, product.sku, quantity,
            )
            raise StockError(
                f"Insufficient stock for {product.name}",
                sku=product.sku,
                requested_qty=quantity,
            )
        return quantity

    @staticmethod
    async def restore_stock(db: AsyncSession, order: Order) -> None:
        """Give back exactly what reserve() took, line by line."""
        if not order.stock_reserved:
            return

        product_ids = []
        for item in order.items:
            if item.product_id is None:
                continue
            product_ids.append(item.product_id)
            await db.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .values(
                    stock=Product.stock + (item.reserved_quantity or 0),
                    sales_count=case(
                        (Product.sales_count >= item.quantity, Product.sales_count - item.quantity),
                        else_=0,
                    ),
                )
                .execution_options(**SYNC)
            )
            item.reserved_quantity = 0

        order.stock_reserved = False
        await db.flush()
        await OrderService._load_products(db, product_ids)
        logger.info("order_stock_restored order_number=%s", order.order_number)

    @staticmethod
    async def cancel(db: AsyncSession, order: Order) -> Order:
        if order.status == OrderStatus.DELIVERED.value:
            raise StateError(
                "Delivered orders cannot be cancelled",
                current=order.status,
                requested=OrderStatus.CANCELLED.value,
            )
        if order.status not in CANCELLABLE_STATUSES:
            raise StateError(
                f"Cannot cancel an order in status {order.status}",
                current=order.status,
                requested=OrderStatus.CANCELLED.value,
            )

        await OrderService.restore_stock(db, order)
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = utcnow()
        await db.flush()

        logger.info("order_cancelled order_number=%s user_id=%s", order.order_number, order.user_id)
        return order

    @staticmethod
    async def update_status(
        db: AsyncSession,
        order: Order,
        status: str,
        tracking_number: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> Order:
        valid = {s.value for s in OrderStatus}
        if status not in valid:
            raise ValidationError(
                f"Invalid status '{status}'",
                errors=[{"field": "status", "message": f"must be one of {', '.join(sorted(valid))}"}],
            )
        if status == OrderStatus.REFUNDED.value:
            raise StateError(
                "Orders are refunded through the payment refund endpoint",
                current=order.status,
                requested=status,
            )

        if tracking_number:
            order.tracking_number = tracking_number
        if admin_notes:
            order.admin_notes = admin_notes

        if status == OrderStatus.CANCELLED.value:
            return await OrderService.cancel(db, order)

        if not can_transition(order.status, status):
            raise StateError(
                f"Cannot move order from {order.status} to {status}",
                current=order.status,
                requested=status,
            )

        # Orders leaving pending without a payment still need their stock
        if not order.stock_reserved:
            await OrderService.reserve(db, order)

        previous = order.status
        order.status = status
        now = utcnow()
        if status == OrderStatus.SHIPPED.value:
            order.shipped_at = now
        elif status == OrderStatus.DELIVERED.value:
            order.shipped_at = order.shipped_at or now
            order.delivered_at = now

        await db.flush()
        logger.info(
            "order_status_changed order_number=%s from=%s to=%s",
            order.order_number, previous, status,
        )
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Order:
        order = await db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        return order

    @staticmethod
    async def get_user_order(db: AsyncSession, user_id: int, order_id: int) -> Order:
        result = await db.execute(
            select(Order).where(Order.id == order_id, Order.user_id == user_id)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        return order

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> Tuple[List[Order], int]:
        """Newest first; returns (page of orders, total matching)."""
        query = select(Order)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        if status:
            query = query.where(Order.status == status)
        if payment_status:
            query = query.where(Order.payment_status == payment_status)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await db.execute(
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total


order_service = OrderService()
