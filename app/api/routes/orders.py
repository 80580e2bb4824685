"""
Order routes

Checkout snapshots the cart into a pending order; stock is taken when the
order is paid (see payments) or when an admin moves it past pending.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_current_user
from app.api.responses import success_response
from app.core.database import get_db
from app.models.user import User
from app.schemas.common import Pagination
from app.schemas.order import OrderCreate, OrderResponse, OrderStatusUpdate
from app.services.order_service import OrderService

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.create_from_cart(
        db,
        current_user,
        payment_method=payload.payment_method,
        shipping_address=payload.shipping_address.model_dump() if payload.shipping_address else None,
        billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
        customer_notes=payload.customer_notes,
    )
    await db.commit()
    return success_response(OrderResponse.model_validate(order), message="Order created successfully")


@router.get("/")
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    orders, total = await OrderService.list_orders(
        db, page=page, limit=limit, user_id=current_user.id, status=order_status,
    )
    return success_response(
        [OrderResponse.model_validate(o) for o in orders],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/admin/all")
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    orders, total = await OrderService.list_orders(
        db, page=page, limit=limit, status=order_status, payment_status=payment_status,
    )
    return success_response(
        [OrderResponse.model_validate(o) for o in orders],
        pagination=Pagination.build(page, limit, total),
    )


@router.put("/admin/{order_id}")
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.get_order(db, order_id)
    order = await OrderService.update_status(
        db,
        order,
        payload.status,
        tracking_number=payload.tracking_number,
        admin_notes=payload.admin_notes,
    )
    await db.commit()
    return success_response(OrderResponse.model_validate(order), message="Order updated successfully")


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.get_user_order(db, current_user.id, order_id)
    return success_response(OrderResponse.model_validate(order))


@router.put("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.get_user_order(db, current_user.id, order_id)
    order = await OrderService.cancel(db, order)
    await db.commit()
    return success_response(OrderResponse.model_validate(order), message="Order cancelled successfully")
