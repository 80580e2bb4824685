"""
Storefront Exception Hierarchy

Structured exception classes raised by services and mapped to HTTP
responses by app.core.error_handler. All exceptions include code, message
and details for logging and client feedback.

Exception Hierarchy:
    ShopError
    ├── ValidationError           400
    ├── DuplicateKeyError         400
    ├── NotFoundError             404
    ├── AuthError                 401
    ├── PermissionDeniedError     403
    ├── StateError                400
    │   ├── EmptyCartError
    │   ├── UnavailableError
    │   └── AlreadyPaidError
    ├── StockError                400
    └── PaymentFailedError        400
"""
from typing import Optional, Dict, Any, List


class ShopError(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/clients
        status_code: HTTP status the error handler responds with
    """

    default_code: str = "SHOP_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(ShopError):
    """Missing or malformed field."""
    default_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["errors"] = errors or []
        super().__init__(message, details=details, **kwargs)


class DuplicateKeyError(ShopError):
    """Unique constraint violated (email, slug, sku, ...)."""
    default_code = "DUPLICATE_KEY"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["field"] = field
        super().__init__(message, details=details, **kwargs)


class NotFoundError(ShopError):
    default_code = "NOT_FOUND"
    status_code = 404


class AuthError(ShopError):
    """Missing, invalid or expired credentials."""
    default_code = "AUTH_FAILED"
    status_code = 401


class PermissionDeniedError(ShopError):
    default_code = "PERMISSION_DENIED"
    status_code = 403


class StateError(ShopError):
    """Operation not permitted in the resource's current state."""
    default_code = "INVALID_STATE"
    status_code = 400

    def __init__(
        self,
        message: str,
        current: Optional[str] = None,
        requested: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if current is not None:
            details["current"] = current
        if requested is not None:
            details["requested"] = requested
        super().__init__(message, details=details, **kwargs)


class EmptyCartError(StateError):
    default_code = "EMPTY_CART"


class UnavailableError(StateError):
    """Product exists but cannot be purchased."""
    default_code = "PRODUCT_UNAVAILABLE"


class AlreadyPaidError(StateError):
    default_code = "ALREADY_PAID"


class StockError(ShopError):
    """Tracked stock lower than the requested quantity."""
    default_code = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(
        self,
        message: str,
        sku: Optional[str] = None,
        requested_qty: Optional[int] = None,
        available_qty: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "sku": sku,
            "requested_qty": requested_qty,
            "available_qty": available_qty,
        })
        super().__init__(message, details=details, **kwargs)


class PaymentFailedError(ShopError):
    """Gateway declined the charge."""
    default_code = "PAYMENT_FAILED"
    status_code = 400
