"""
Security headers middleware

JSON API only, so the CSP is strict everywhere except the interactive docs.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings

DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    CSP_DIRECTIVES = {
        "default-src": "'none'",
        "frame-ancestors": "'none'",
        "base-uri": "'none'",
        "form-action": "'none'",
    }

    # Swagger UI loads its bundle from jsdelivr
    DOCS_CSP_DIRECTIVES = {
        "default-src": "'self'",
        "script-src": "'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "style-src": "'self' 'unsafe-inline' https://cdn.jsdelivr.net",
        "img-src": "'self' data: https:",
        "frame-ancestors": "'self'",
        "object-src": "'none'",
    }

    def _build_csp(self, directives: dict) -> str:
        return "; ".join(f"{key} {value}" for key, value in directives.items())

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        if request.url.path in DOCS_PATHS:
            response.headers["Content-Security-Policy"] = self._build_csp(self.DOCS_CSP_DIRECTIVES)
        else:
            response.headers["Content-Security-Policy"] = self._build_csp(self.CSP_DIRECTIVES)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS only in production
        if settings.ENVIRONMENT == "production" and not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
