"""
Coupon model

Percentage or fixed-amount discount codes applied to a cart.
"""
from datetime import timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric

from app.core.database import Base
from app.core.utils import utcnow

DISCOUNT_TYPES = ("percentage", "fixed")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)  # stored uppercase

    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    value = Column(Numeric(10, 2), nullable=False)
    min_subtotal = Column(Numeric(12, 2), default=0)

    is_active = Column(Boolean, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        # SQLite hands back naive datetimes
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= utcnow()
