"""
Error handling and sanitization

- ShopError subclasses -> their status code with the standard envelope
- Request validation errors -> 400 with per-field messages
- Integrity errors -> 400 duplicate key (field guessed from the constraint)
- Anything else -> 500, detail suppressed outside development
"""
import logging
import traceback

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.exceptions import ShopError

logger = logging.getLogger(__name__)

UNIQUE_FIELDS = ("email", "slug", "sku", "code", "name", "order_number")


def error_response(status_code: int, message: str, code: str, details: dict = None, **extra) -> JSONResponse:
    content = {
        "success": False,
        "message": message,
        "error": {"code": code, "details": details or {}},
    }
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc!r} on {request.method} {request.url.path}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    extra = {}
    if "errors" in exc.details:
        extra["errors"] = exc.details["errors"]
    return error_response(exc.status_code, exc.message, exc.code, exc.details, **extra)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return error_response(400, "Validation error", "VALIDATION_ERROR", {"errors": errors}, errors=errors)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    raw = str(exc.orig).lower() if exc.orig else str(exc).lower()
    field = next((name for name in UNIQUE_FIELDS if name in raw), None)
    logger.warning(f"Integrity error on {request.url.path}: field={field}")
    message = f"A record with this {field} already exists" if field else "Duplicate value"
    return error_response(400, message, "DUPLICATE_KEY", {"field": field})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "error": {"code": "HTTP_ERROR", "details": {}}},
        headers=getattr(exc, "headers", None),
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            if settings.DEBUG or settings.is_development:
                return error_response(
                    500, str(e), "INTERNAL_ERROR",
                    {"type": type(e).__name__, "error_id": error_id},
                )
            return error_response(
                500, "An unexpected error occurred. Please try again later.", "INTERNAL_ERROR",
                {"error_id": error_id},
            )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
