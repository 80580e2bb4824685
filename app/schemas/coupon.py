"""
Coupon schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount_type: Literal["percentage", "fixed"]
    value: Decimal = Field(..., gt=0)
    min_subtotal: Decimal = Field(Decimal("0"), ge=0)
    is_active: bool = True
    expires_at: Optional[datetime] = None


class CouponResponse(BaseModel):
    id: int
    code: str
    discount_type: str
    value: float
    min_subtotal: float = 0.0
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
