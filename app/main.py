"""
Storefront API
FastAPI application entry point

- Rate limiting with SlowAPI
- Error sanitization middleware
- Security headers (CSP, X-Frame-Options, etc.)
- Health endpoint with DB ping
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes import auth, cart, categories, coupons, orders, payments, products, reviews
from app.core.config import settings
from app.core.database import get_db, init_models
from app.core.error_handler import ErrorSanitizationMiddleware, register_exception_handlers
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.core.security_headers import SecurityHeadersMiddleware

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup (no migration framework)."""
    await init_models()
    logger.info(f"{settings.APP_NAME} started (environment={settings.ENVIRONMENT})")
    yield
    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    description="""
## Storefront API

E-commerce backend: catalog, carts, orders, payments and reviews.

### Authentication
Bearer JWT from `/api/auth/login` or `/api/auth/register`.

### Rate Limits
- Auth endpoints: RATE_LIMIT_AUTH
- Payment processing: RATE_LIMIT_PAYMENT
- General: RATE_LIMIT_DEFAULT
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Authentication", "description": "Registration, login and profile"},
        {"name": "Products", "description": "Product catalog"},
        {"name": "Reviews", "description": "Product reviews and ratings"},
        {"name": "Categories", "description": "Category tree"},
        {"name": "Cart", "description": "Shopping cart operations"},
        {"name": "Coupons", "description": "Discount code administration"},
        {"name": "Orders", "description": "Checkout and order management"},
        {"name": "Payments", "description": "Payment processing, webhooks and refunds"},
    ],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Taxonomy, request validation, integrity and HTTP errors -> envelope
register_exception_handlers(app)

# Error sanitization (catches unhandled exceptions)
app.add_middleware(ErrorSanitizationMiddleware)

# Security headers (CSP, X-Frame-Options, etc.)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers; reviews before products so /reviews/{id} is not read as a slug
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(reviews.router, prefix="/api/products", tags=["Reviews"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(coupons.router, prefix="/api/coupons", tags=["Coupons"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check with a database ping. Returns 503 if the database is unreachable."""
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database ping failed: {e}")
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
