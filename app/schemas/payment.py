"""
Payment schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PaymentProcess(BaseModel):
    order_id: int
    payment_method: str = Field(..., min_length=1, max_length=50)
    # Gateway specific: {"payment_method_id": ...} for stripe, {"token": ...} for simulated
    payment_data: Dict[str, Any] = {}


class RefundCreate(BaseModel):
    # Omitted -> refund everything that remains
    amount: Optional[Decimal] = Field(None, gt=0)
    reason: Optional[str] = Field(None, max_length=255)


class PaymentRefundResponse(BaseModel):
    id: int
    amount: float
    reason: Optional[str] = None
    gateway_refund_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    payment_method: str
    gateway: str
    gateway_payment_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    refunded_amount: float = 0.0
    refunds: List[PaymentRefundResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
