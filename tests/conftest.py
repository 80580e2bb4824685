"""
Pytest configuration and fixtures for the storefront tests.

Every test gets its own file-backed SQLite database so that separate
sessions (and the HTTP client) see each other's committed writes.
"""
import os
from decimal import Decimal
from itertools import count

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PAYMENT_GATEWAY"] = "simulated"
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["DEFAULT_TAX_RATE"] = "0"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import app.models  # noqa: E402,F401
from app.core.database import Base, get_db  # noqa: E402
from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models import Product, ProductStatus, User, UserRole  # noqa: E402

_seq = count(1)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make(email=None, role=UserRole.CUSTOMER.value, password="secret123", **kwargs):
        user = User(
            email=email or f"user{next(_seq)}@example.com",
            hashed_password=get_password_hash(password),
            first_name=kwargs.pop("first_name", "Ana"),
            last_name=kwargs.pop("last_name", "Lopez"),
            phone=kwargs.pop("phone", "555-0100"),
            role=role,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_product(db):
    async def _make(**overrides):
        n = next(_seq)
        data = {
            "name": f"Product {n}",
            "slug": f"product-{n}",
            "description": "A product used in tests",
            "price": Decimal("20.00"),
            "sku": f"SKU-TEST-{n}",
            "stock": 10,
            "track_quantity": True,
            "allow_backorder": False,
            "images": [{"url": f"https://img.example.com/{n}.jpg", "alt_text": "", "is_primary": True}],
            "attributes": {"size": ["M", "L"], "color": ["blue"]},
            "status": ProductStatus.ACTIVE.value,
            "is_published": True,
            "categories": [],
        }
        data.update(overrides)
        product = Product(**data)
        db.add(product)
        await db.commit()
        return product
    return _make


@pytest.fixture
async def customer(make_user):
    return await make_user(email="customer@example.com")


@pytest.fixture
async def admin(make_user):
    return await make_user(email="admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}
    return _headers


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    fastapi_app.dependency_overrides.clear()
