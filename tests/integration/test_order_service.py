from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import delete, select

from app.core.exceptions import EmptyCartError, NotFoundError, StateError, StockError
from app.core.utils import utcnow
from app.models import Coupon, Order, OrderStatus, Product, User
from app.services.cart_service import CartService
from app.services.order_service import OrderService

pytestmark = pytest.mark.anyio


async def checkout(db, user, *lines):
    for product, quantity in lines:
        await CartService.add_item(db, user.id, product.id, quantity, {"size": "M"})
    order = await OrderService.create_from_cart(
        db, user, payment_method="card", shipping_address={"street": "1 Main St", "city": "Lima"},
    )
    await db.commit()
    return order


async def stock_of(db, product):
    await db.refresh(product)
    return product.stock


async def test_empty_cart_cannot_be_ordered(db, customer):
    with pytest.raises(EmptyCartError):
        await OrderService.create_from_cart(db, customer, payment_method="card")


async def test_order_snapshots_cart_and_clears_it(db, customer, make_product):
    product = await make_product(price=Decimal("20.00"))
    db.add(Coupon(code="SAVE10", discount_type="percentage", value=Decimal("10")))
    await db.commit()
    await CartService.add_item(db, customer.id, product.id, 2, {"size": "M"})
    await CartService.apply_coupon(db, customer.id, "SAVE10")
    await CartService.set_shipping(db, customer.id, "standard", {"city": "Lima"})

    order = await OrderService.create_from_cart(db, customer, payment_method="card")
    await db.commit()

    assert order.status == OrderStatus.PENDING.value
    assert order.payment_status == "pending"
    assert order.order_number.startswith("ORD-")
    assert order.subtotal == Decimal("40.00")
    assert order.discount_amount == Decimal("4.00")
    assert order.shipping_cost == Decimal("5.00")
    assert order.total_amount == Decimal("41.00")
    assert order.shipping_address == {"city": "Lima"}
    assert order.billing_address == {"city": "Lima"}
    assert order.customer_info["email"] == customer.email
    assert order.coupon == {"code": "SAVE10", "discount": 10.0, "type": "percentage"}

    item = order.items[0]
    assert (item.product_name, item.sku, item.unit_price, item.quantity) == (
        product.name, product.sku, Decimal("20.00"), 2,
    )
    assert item.attributes == {"size": "M"}
    assert item.product_image == product.primary_image_url

    cart = await CartService.get_or_create_cart(db, customer.id)
    assert cart.items == []
    assert cart.coupon is None
    # stock is untouched until payment
    assert await stock_of(db, product) == 10


async def test_checkout_rechecks_the_applied_coupon(db, customer, make_product):
    product = await make_product(price=Decimal("20.00"))
    coupon = Coupon(code="OVER30", discount_type="fixed", value=Decimal("5"), min_subtotal=Decimal("30"))
    db.add(coupon)
    await db.commit()
    await CartService.add_item(db, customer.id, product.id, 2)
    await CartService.apply_coupon(db, customer.id, "OVER30")

    await CartService.set_quantity(db, customer.id, product.id, 1)
    with pytest.raises(StateError) as exc_info:
        await OrderService.create_from_cart(db, customer, payment_method="card")
    assert exc_info.value.details["min_subtotal"] == 30.0

    await CartService.set_quantity(db, customer.id, product.id, 2)
    coupon.expires_at = utcnow() - timedelta(minutes=1)
    await db.flush()
    with pytest.raises(StateError, match="expired"):
        await OrderService.create_from_cart(db, customer, payment_method="card")

    cart = await CartService.get_cart(db, customer.id)
    assert cart.coupon["code"] == "OVER30"
    assert len(cart.items) == 1


async def test_catalog_edits_do_not_change_orders(db, session_factory, customer, make_product):
    product = await make_product(name="Original", price=Decimal("15.00"))
    order = await checkout(db, customer, (product, 1))

    product.name = "Renamed"
    product.price = Decimal("99.00")
    await db.commit()

    async with session_factory() as other:
        reloaded = await other.get(Order, order.id)
        assert reloaded.items[0].product_name == "Original"
        assert reloaded.items[0].unit_price == Decimal("15.00")
        assert reloaded.total_amount == Decimal("20.00")  # 15.00 + 5.00 standard shipping


async def test_reserve_decrements_stock_and_confirms(db, customer, make_product):
    product = await make_product(stock=5)
    order = await checkout(db, customer, (product, 3))

    await OrderService.reserve(db, order)
    await db.commit()

    assert order.status == OrderStatus.CONFIRMED.value
    assert order.stock_reserved is True
    assert order.items[0].reserved_quantity == 3
    assert await stock_of(db, product) == 2
    assert product.sales_count == 3

    # reserving again is a no-op
    await OrderService.reserve(db, order)
    await db.commit()
    assert await stock_of(db, product) == 2


async def test_reserve_is_all_or_nothing(db, customer, make_product):
    plenty = await make_product(stock=10)
    scarce = await make_product(stock=1)
    order = await checkout(db, customer, (plenty, 2), (scarce, 2))
    scarce_sku = scarce.sku

    with pytest.raises(StockError) as exc_info:
        await OrderService.reserve(db, order)
    await db.rollback()

    assert exc_info.value.details["sku"] == scarce_sku
    assert await stock_of(db, plenty) == 10
    assert await stock_of(db, scarce) == 1
    await db.refresh(order)
    assert order.status == OrderStatus.PENDING.value
    assert order.stock_reserved is False


async def test_reserve_undoes_earlier_lines_when_a_later_update_loses(db, customer, make_product):
    plenty = await make_product(stock=10)
    scarce = await make_product(stock=1)
    order = await checkout(db, customer, (plenty, 2), (scarce, 2))

    # the validation pass sees enough stock, as it would just before a competing buyer commits
    async def stale_check(session, pending):
        return await OrderService._load_products(session, (i.product_id for i in pending.items))

    with patch.object(OrderService, "check_stock", new=stale_check):
        with pytest.raises(StockError):
            await OrderService.reserve(db, order)

    # no caller rollback: the session itself must hold nothing of the failed reservation
    await db.commit()
    assert await stock_of(db, plenty) == 10
    assert await stock_of(db, scarce) == 1
    await db.refresh(order)
    assert order.status == OrderStatus.PENDING.value
    assert order.stock_reserved is False
    assert [item.reserved_quantity for item in order.items] == [0, 0]


async def test_reserve_fails_when_product_was_deleted(db, customer, make_product):
    product = await make_product()
    order = await checkout(db, customer, (product, 1))
    await db.execute(delete(Product).where(Product.id == product.id))
    await db.commit()
    await db.refresh(order)

    with pytest.raises(NotFoundError):
        await OrderService.reserve(db, order)


async def test_stale_reads_cannot_oversell_last_unit(session_factory, make_user, make_product):
    product = await make_product(stock=1)
    first_buyer = await make_user()
    second_buyer = await make_user()

    async with session_factory() as s1, session_factory() as s2:
        buyer_1 = await s1.get(User, first_buyer.id)
        buyer_2 = await s2.get(User, second_buyer.id)
        order_1 = await checkout(s1, buyer_1, (await s1.get(Product, product.id), 1))
        order_2 = await checkout(s2, buyer_2, (await s2.get(Product, product.id), 1))

        # both sessions have now seen stock == 1
        assert (await s1.get(Product, product.id)).stock == 1
        assert (await s2.get(Product, product.id)).stock == 1

        await OrderService.reserve(s1, order_1)
        await s1.commit()

        with pytest.raises(StockError):
            await OrderService.reserve(s2, order_2)
        await s2.rollback()

    async with session_factory() as check:
        stock = (await check.execute(select(Product.stock).where(Product.id == product.id))).scalar_one()
        assert stock == 0
        statuses = (await check.execute(select(Order.status).order_by(Order.id))).scalars().all()
        assert sorted(statuses) == [OrderStatus.CONFIRMED.value, OrderStatus.PENDING.value]


async def test_backorder_takes_what_is_there_and_restores_exactly_that(db, customer, make_product):
    product = await make_product(stock=2, allow_backorder=True)
    order = await checkout(db, customer, (product, 5))

    await OrderService.reserve(db, order)
    await db.commit()
    assert order.items[0].reserved_quantity == 2
    assert await stock_of(db, product) == 0

    await OrderService.cancel(db, order)
    await db.commit()
    assert await stock_of(db, product) == 2


async def test_untracked_products_keep_their_stock(db, customer, make_product):
    product = await make_product(stock=0, track_quantity=False)
    order = await checkout(db, customer, (product, 4))

    await OrderService.reserve(db, order)
    await db.commit()
    assert await stock_of(db, product) == 0
    assert product.sales_count == 4


async def test_cancel_restores_reserved_quantities(db, customer, make_product):
    product = await make_product(stock=5)
    order = await checkout(db, customer, (product, 2))
    await OrderService.reserve(db, order)
    await db.commit()

    await OrderService.cancel(db, order)
    await db.commit()

    assert order.status == OrderStatus.CANCELLED.value
    assert order.cancelled_at is not None
    assert order.stock_reserved is False
    assert await stock_of(db, product) == 5
    assert product.sales_count == 0

    with pytest.raises(StateError):
        await OrderService.cancel(db, order)


async def test_cancel_pending_order_leaves_stock_alone(db, customer, make_product):
    product = await make_product(stock=5)
    order = await checkout(db, customer, (product, 2))
    await OrderService.cancel(db, order)
    await db.commit()
    assert await stock_of(db, product) == 5


async def test_delivered_orders_cannot_be_cancelled(db, customer, make_product):
    product = await make_product()
    order = await checkout(db, customer, (product, 1))
    await OrderService.update_status(db, order, "delivered")
    await db.commit()

    with pytest.raises(StateError) as exc_info:
        await OrderService.cancel(db, order)
    assert "Delivered" in exc_info.value.message
    assert await stock_of(db, product) == 9


async def test_admin_status_updates_move_forward_only(db, customer, make_product):
    product = await make_product(stock=3)
    order = await checkout(db, customer, (product, 1))

    # leaving pending reserves stock
    await OrderService.update_status(db, order, "processing", admin_notes="packing")
    assert order.status == "processing"
    assert order.stock_reserved is True
    assert order.admin_notes == "packing"

    await OrderService.update_status(db, order, "shipped", tracking_number="TRACK123")
    assert order.shipped_at is not None
    assert order.tracking_number == "TRACK123"

    with pytest.raises(StateError):
        await OrderService.update_status(db, order, "confirmed")
    with pytest.raises(StateError):
        await OrderService.update_status(db, order, "cancelled")
    with pytest.raises(StateError):
        await OrderService.update_status(db, order, "refunded")

    await OrderService.update_status(db, order, "delivered")
    assert order.delivered_at is not None
    await db.commit()
    assert await stock_of(db, product) == 2
