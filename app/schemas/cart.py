"""
Cart schemas
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.common import Address
from app.schemas.product import ProductSummary


class CartItemAttributes(BaseModel):
    size: Optional[str] = None
    color: Optional[str] = None
    material: Optional[str] = None


class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)
    attributes: Optional[CartItemAttributes] = None


class CartItemUpdate(BaseModel):
    # zero or less removes the line
    quantity: int
    attributes: Optional[CartItemAttributes] = None


class CouponApply(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class ShippingUpdate(BaseModel):
    method: str
    address: Optional[Address] = None


class CartItemResponse(BaseModel):
    id: int
    product_id: int
    product: Optional[ProductSummary] = None
    quantity: int
    price: float
    attributes: Dict[str, Any] = {}

    class Config:
        from_attributes = True


class CouponSnapshot(BaseModel):
    code: str
    discount: float
    type: str


class CartResponse(BaseModel):
    id: int
    items: List[CartItemResponse]
    coupon: Optional[CouponSnapshot] = None
    shipping_address: Optional[Dict[str, Any]] = None
    shipping_method: Optional[str] = None
    shipping_cost: float = 0.0
    tax_rate: float = 0.0

    subtotal: float
    discount_amount: float
    tax_amount: float
    total: float
    item_count: int
