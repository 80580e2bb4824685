"""
ReviewService

Product.average_rating and Product.reviews_count are denormalized from the
approved reviews and recomputed explicitly after every review write.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateKeyError, NotFoundError
from app.models import Order, OrderItem, PaymentStatus, Product, Review

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("rating", "title", "comment")


class ReviewService:

    @staticmethod
    async def recalculate_product_rating(db: AsyncSession, product_id: int) -> Product:
        result = await db.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(
                Review.product_id == product_id,
                Review.is_approved.is_(True),
            )
        )
        average, count = result.one()

        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        product.average_rating = float(average) if count else 0.0
        product.reviews_count = count or 0
        await db.flush()
        return product

    @staticmethod
    async def list_for_product(db: AsyncSession, product_id: int) -> List[Review]:
        result = await db.execute(
            select(Review)
            .where(Review.product_id == product_id, Review.is_approved.is_(True))
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def has_purchased(db: AsyncSession, user_id: int, product_id: int) -> bool:
        result = await db.execute(
            select(OrderItem.id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                Order.user_id == user_id,
                Order.payment_status == PaymentStatus.PAID.value,
                OrderItem.product_id == product_id,
            )
            .limit(1)
        )
        return result.first() is not None

    @staticmethod
    async def create(db: AsyncSession, user_id: int, product_id: int, data: Dict[str, Any]) -> Review:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})

        existing = await db.execute(
            select(Review.id).where(Review.product_id == product_id, Review.user_id == user_id)
        )
        if existing.first() is not None:
            raise DuplicateKeyError("You have already reviewed this product", field="product")

        review = Review(
            product_id=product_id,
            user_id=user_id,
            rating=data["rating"],
            title=data.get("title"),
            comment=data["comment"],
            is_verified=await ReviewService.has_purchased(db, user_id, product_id),
            is_approved=True,
        )
        db.add(review)
        await db.flush()
        await db.refresh(review, attribute_names=["user"])

        await ReviewService.recalculate_product_rating(db, product_id)
        logger.info("review_created product_id=%s user_id=%s rating=%s", product_id, user_id, review.rating)
        return review

    @staticmethod
    async def _get_own(db: AsyncSession, user_id: int, review_id: int) -> Review:
        result = await db.execute(
            select(Review).where(Review.id == review_id, Review.user_id == user_id)
        )
        review = result.scalar_one_or_none()
        if review is None:
            raise NotFoundError("Review not found", details={"review_id": review_id})
        return review

    @staticmethod
    async def update(db: AsyncSession, user_id: int, review_id: int, data: Dict[str, Any]) -> Review:
        review = await ReviewService._get_own(db, user_id, review_id)
        for key in EDITABLE_FIELDS:
            if data.get(key) is not None:
                setattr(review, key, data[key])
        await db.flush()
        await ReviewService.recalculate_product_rating(db, review.product_id)
        return review

    @staticmethod
    async def delete(db: AsyncSession, user_id: int, review_id: int) -> None:
        review = await ReviewService._get_own(db, user_id, review_id)
        product_id = review.product_id
        await db.delete(review)
        await db.flush()
        await ReviewService.recalculate_product_rating(db, product_id)
        logger.info("review_deleted product_id=%s user_id=%s", product_id, user_id)


review_service = ReviewService()
