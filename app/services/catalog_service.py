"""
Catalog services - products and the category tree

Uniqueness of slug / sku / category name is checked explicitly before
writing so callers get a DuplicateKeyError naming the field; the database
constraints remain the final guard (mapped by the IntegrityError handler).
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, asc, cast, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from app.core.utils import generate_sku, slugify
from app.models import Category, Product, ProductStatus

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "created_at": Product.created_at,
    "price": Product.price,
    "name": Product.name,
    "average_rating": Product.average_rating,
    "sales_count": Product.sales_count,
    "views": Product.views,
}

FEATURED_LIMIT = 8


def _require_slug(name: str, explicit: Optional[str] = None) -> str:
    slug = slugify(explicit or name)
    if not slug:
        raise ValidationError(
            "Name must contain at least one letter or digit",
            errors=[{"field": "name", "message": "cannot produce a slug"}],
        )
    return slug


def _visible():
    return (Product.status == ProductStatus.ACTIVE.value, Product.is_published.is_(True))


def _text_match(term: str, *, include_color: bool = False):
    pattern = f"%{term.lower()}%"
    clauses = [
        func.lower(Product.name).like(pattern),
        func.lower(Product.description).like(pattern),
        func.lower(func.coalesce(Product.brand, "")).like(pattern),
    ]
    if include_color:
        clauses.append(func.lower(cast(Product.attributes["color"], String)).like(pattern))
    return or_(*clauses)


class ProductService:

    @staticmethod
    async def list_products(
        db: AsyncSession,
        page: int = 1,
        limit: int = 12,
        sort: str = "created_at",
        order: str = "desc",
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        featured: Optional[bool] = None,
        in_stock: Optional[bool] = None,
        status: str = ProductStatus.ACTIVE.value,
    ) -> Tuple[List[Product], int]:
        query = select(Product).where(Product.status == status, Product.is_published.is_(True))

        if category:
            cat = (await db.execute(select(Category).where(Category.slug == category))).scalar_one_or_none()
            # Unknown category slugs do not filter
            if cat is not None:
                query = query.where(Product.categories.any(Category.id == cat.id))
        if search:
            query = query.where(_text_match(search))
        if min_price is not None:
            query = query.where(Product.price >= min_price)
        if max_price is not None:
            query = query.where(Product.price <= max_price)
        if featured is not None:
            query = query.where(Product.is_featured == featured)
        if in_stock:
            query = query.where(or_(Product.stock > 0, Product.allow_backorder.is_(True)))

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

        column = SORT_FIELDS.get(sort, Product.created_at)
        direction = asc if order == "asc" else desc
        result = await db.execute(
            query.order_by(direction(column), direction(Product.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def featured(db: AsyncSession, limit: int = FEATURED_LIMIT) -> List[Product]:
        result = await db.execute(
            select(Product)
            .where(Product.is_featured.is_(True), *_visible())
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def search(db: AsyncSession, term: str, limit: int = 10) -> List[Product]:
        result = await db.execute(
            select(Product)
            .where(*_visible(), _text_match(term, include_color=True))
            .order_by(Product.name)
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get(db: AsyncSession, product_id: int) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        return product

    @staticmethod
    async def get_by_slug(db: AsyncSession, slug: str, count_view: bool = True) -> Product:
        result = await db.execute(select(Product).where(Product.slug == slug))
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product not found", details={"slug": slug})

        if count_view:
            await db.execute(
                update(Product)
                .where(Product.id == product.id)
                .values(views=Product.views + 1)
                .execution_options(synchronize_session=False)
            )
            await db.refresh(product, attribute_names=["views"])
        return product

    @staticmethod
    async def _check_unique(db: AsyncSession, column, value, field: str, exclude_id: Optional[int] = None):
        query = select(Product.id).where(column == value)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicateKeyError(f"A product with this {field} already exists", field=field)

    @staticmethod
    async def _resolve_categories(db: AsyncSession, data: Dict[str, Any]) -> None:
        """Swap category ids in data for Category rows; validate main_category_id."""
        if "categories" in data:
            ids = list(dict.fromkeys(data.pop("categories") or []))
            categories = []
            if ids:
                result = await db.execute(select(Category).where(Category.id.in_(ids)))
                categories = list(result.scalars().all())
                missing = set(ids) - {c.id for c in categories}
                if missing:
                    raise NotFoundError("Category not found", details={"category_ids": sorted(missing)})
            data["categories"] = categories

        main_id = data.get("main_category_id")
        if main_id is not None and await db.get(Category, main_id) is None:
            raise NotFoundError("Category not found", details={"category_id": main_id})

    @staticmethod
    async def create(db: AsyncSession, data: Dict[str, Any]) -> Product:
        data = dict(data)
        data["slug"] = _require_slug(data["name"], data.get("slug"))
        data["sku"] = (data.get("sku") or generate_sku()).upper()

        await ProductService._check_unique(db, Product.slug, data["slug"], "slug")
        await ProductService._check_unique(db, Product.sku, data["sku"], "sku")
        await ProductService._resolve_categories(db, data)

        product = Product(**data)
        db.add(product)
        await db.flush()
        await db.refresh(product)
        logger.info("product_created id=%s sku=%s", product.id, product.sku)
        return product

    @staticmethod
    async def update(db: AsyncSession, product_id: int, data: Dict[str, Any]) -> Product:
        product = await ProductService.get(db, product_id)
        data = dict(data)

        if data.get("slug"):
            data["slug"] = _require_slug(data["slug"])
        elif data.get("name") and data["name"] != product.name:
            data["slug"] = _require_slug(data["name"])
        else:
            data.pop("slug", None)
        if "slug" in data:
            await ProductService._check_unique(db, Product.slug, data["slug"], "slug", exclude_id=product.id)

        if data.get("sku"):
            data["sku"] = data["sku"].upper()
            await ProductService._check_unique(db, Product.sku, data["sku"], "sku", exclude_id=product.id)
        else:
            data.pop("sku", None)

        await ProductService._resolve_categories(db, data)
        for key, value in data.items():
            setattr(product, key, value)

        await db.flush()
        await db.refresh(product)
        logger.info("product_updated id=%s fields=%s", product.id, ",".join(sorted(data)))
        return product

    @staticmethod
    async def archive(db: AsyncSession, product_id: int) -> Product:
        product = await ProductService.get(db, product_id)
        product.status = ProductStatus.ARCHIVED.value
        await db.flush()
        logger.info("product_archived id=%s sku=%s", product.id, product.sku)
        return product


class CategoryService:

    @staticmethod
    async def list_active(db: AsyncSession) -> List[Category]:
        result = await db.execute(
            select(Category)
            .where(Category.is_active.is_(True))
            .order_by(Category.sort_order, Category.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get(db: AsyncSession, category_id: int) -> Category:
        category = await db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found", details={"category_id": category_id})
        return category

    @staticmethod
    async def get_by_slug(db: AsyncSession, slug: str) -> Category:
        result = await db.execute(
            select(Category).where(Category.slug == slug, Category.is_active.is_(True))
        )
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError("Category not found", details={"slug": slug})
        return category

    @staticmethod
    async def _check_unique(db: AsyncSession, column, value, field: str, exclude_id: Optional[int] = None):
        query = select(Category.id).where(column == value)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise DuplicateKeyError(f"A category with this {field} already exists", field=field)

    @staticmethod
    async def _check_parent(db: AsyncSession, parent_id: Optional[int], category_id: Optional[int] = None):
        """Parent must exist and must not be the category or one of its descendants."""
        if parent_id is None:
            return
        if parent_id == category_id:
            raise ValidationError(
                "A category cannot be its own parent",
                errors=[{"field": "parent_id", "message": "cannot reference itself"}],
            )

        seen = set()
        current = await db.get(Category, parent_id)
        if current is None:
            raise NotFoundError("Parent category not found", details={"parent_id": parent_id})
        while current is not None and current.id not in seen:
            if category_id is not None and current.id == category_id:
                raise ValidationError(
                    "A category cannot be moved under one of its descendants",
                    errors=[{"field": "parent_id", "message": "would create a cycle"}],
                )
            seen.add(current.id)
            current = await db.get(Category, current.parent_id) if current.parent_id else None

    @staticmethod
    async def create(db: AsyncSession, data: Dict[str, Any]) -> Category:
        data = dict(data)
        data["slug"] = _require_slug(data["name"])
        await CategoryService._check_unique(db, Category.name, data["name"], "name")
        await CategoryService._check_unique(db, Category.slug, data["slug"], "slug")
        await CategoryService._check_parent(db, data.get("parent_id"))

        category = Category(**data)
        db.add(category)
        await db.flush()
        await db.refresh(category)
        logger.info("category_created id=%s slug=%s", category.id, category.slug)
        return category

    @staticmethod
    async def update(db: AsyncSession, category_id: int, data: Dict[str, Any]) -> Category:
        category = await CategoryService.get(db, category_id)
        data = dict(data)

        if data.get("name") and data["name"] != category.name:
            data["slug"] = _require_slug(data["name"])
            await CategoryService._check_unique(db, Category.name, data["name"], "name", exclude_id=category.id)
            await CategoryService._check_unique(db, Category.slug, data["slug"], "slug", exclude_id=category.id)
        if "parent_id" in data:
            await CategoryService._check_parent(db, data["parent_id"], category.id)

        for key, value in data.items():
            setattr(category, key, value)
        await db.flush()
        await db.refresh(category)
        return category

    @staticmethod
    async def deactivate(db: AsyncSession, category_id: int) -> Category:
        category = await CategoryService.get(db, category_id)
        category.is_active = False
        await db.flush()
        logger.info("category_deactivated id=%s slug=%s", category.id, category.slug)
        return category


product_service = ProductService()
category_service = CategoryService()
