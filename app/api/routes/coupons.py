"""
Coupon admin routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.api.responses import success_response
from app.core.database import get_db
from app.models.user import User
from app.schemas.coupon import CouponCreate, CouponResponse
from app.services.coupon_service import CouponService

router = APIRouter()


@router.get("/")
async def list_coupons(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    coupons = await CouponService.list_coupons(db)
    return success_response([CouponResponse.model_validate(c) for c in coupons])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_coupon(
    data: CouponCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    coupon = await CouponService.create(db, data.model_dump())
    await db.commit()
    return success_response(CouponResponse.model_validate(coupon), message="Coupon created successfully")


@router.delete("/{coupon_id}")
async def deactivate_coupon(
    coupon_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await CouponService.deactivate(db, coupon_id)
    await db.commit()
    return success_response(message="Coupon deactivated")
