"""
Review routes, mounted under /api/products
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.responses import success_response
from app.core.database import get_db
from app.models.user import User
from app.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from app.services.review_service import ReviewService

router = APIRouter()


@router.get("/{product_id}/reviews")
async def list_reviews(product_id: int, db: AsyncSession = Depends(get_db)):
    reviews = await ReviewService.list_for_product(db, product_id)
    return success_response([ReviewResponse.model_validate(r) for r in reviews], count=len(reviews))


@router.post("/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
async def create_review(
    product_id: int,
    payload: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    review = await ReviewService.create(db, current_user.id, product_id, payload.model_dump())
    await db.commit()
    return success_response(ReviewResponse.model_validate(review), message="Review created successfully")


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: int,
    payload: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    review = await ReviewService.update(db, current_user.id, review_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    return success_response(ReviewResponse.model_validate(review), message="Review updated successfully")


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await ReviewService.delete(db, current_user.id, review_id)
    await db.commit()
    return success_response(message="Review deleted successfully")
