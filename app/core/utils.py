"""
Core Utilities

Shared helpers used across the application.
"""
import re
import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")

_SLUG_STRIP = re.compile(r"[^a-z0-9 -]")
_SLUG_SPACES = re.compile(r"\s+")
_SLUG_DASHES = re.compile(r"-+")


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def slugify(value: str) -> str:
    """
    URL-safe slug shared by products and categories.

    "Camiseta Básica  -- Blue!" -> "camiseta-bsica-blue"
    """
    slug = _SLUG_STRIP.sub("", (value or "").lower())
    slug = _SLUG_SPACES.sub("-", slug)
    slug = _SLUG_DASHES.sub("-", slug)
    return slug.strip("-")


def generate_sku() -> str:
    """Generate SKU in format SKU-<epoch ms>-<9 uppercase alphanumerics>."""
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(9))
    return f"SKU-{int(time.time() * 1000)}-{suffix}"


def to_money(value) -> Decimal:
    """Quantize any numeric value to cents (ROUND_HALF_UP)."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def dollars_to_cents(amount) -> int:
    """Convert a dollar amount to integer cents."""
    return int(to_money(amount) * 100)
