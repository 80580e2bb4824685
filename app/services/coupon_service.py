"""
CouponService - admin management of discount codes
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from app.models import Coupon

logger = logging.getLogger(__name__)


class CouponService:

    @staticmethod
    async def list_coupons(db: AsyncSession) -> List[Coupon]:
        result = await db.execute(select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def create(db: AsyncSession, data: Dict[str, Any]) -> Coupon:
        data = dict(data)
        data["code"] = data["code"].strip().upper()
        if data["discount_type"] == "percentage" and Decimal(str(data["value"])) > 100:
            raise ValidationError(
                "Percentage discount cannot exceed 100",
                errors=[{"field": "value", "message": "must be <= 100"}],
            )

        existing = await db.execute(select(Coupon.id).where(Coupon.code == data["code"]))
        if existing.first() is not None:
            raise DuplicateKeyError("Coupon code already exists", field="code")

        coupon = Coupon(**data)
        db.add(coupon)
        await db.flush()
        logger.info("coupon_created code=%s type=%s", coupon.code, coupon.discount_type)
        return coupon

    @staticmethod
    async def deactivate(db: AsyncSession, coupon_id: int) -> Coupon:
        coupon = await db.get(Coupon, coupon_id)
        if coupon is None:
            raise NotFoundError("Coupon not found", details={"coupon_id": coupon_id})
        coupon.is_active = False
        await db.flush()
        logger.info("coupon_deactivated code=%s", coupon.code)
        return coupon


coupon_service = CouponService()
