"""
Order schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.common import Address

OrderStatusLiteral = Literal[
    "pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded",
]


class OrderCreate(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    customer_notes: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(BaseModel):
    status: OrderStatusLiteral
    tracking_number: Optional[str] = Field(None, max_length=100)
    admin_notes: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int] = None
    product_name: str
    product_image: str = ""
    sku: str
    unit_price: float
    quantity: int
    attributes: Dict[str, Any] = {}
    reserved_quantity: int = 0

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    customer_info: Dict[str, Any]

    status: str
    payment_status: str

    subtotal: float
    shipping_cost: float
    tax_amount: float
    discount_amount: float
    total_amount: float

    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    shipping_method: str
    tracking_number: Optional[str] = None

    payment_method: str
    payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    stock_reserved: bool = False

    customer_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    coupon: Optional[Dict[str, Any]] = None

    items: List[OrderItemResponse]

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True
