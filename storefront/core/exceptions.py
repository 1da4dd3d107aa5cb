"""
Storefront Exception Hierarchy

Structured exception classes for the catalog, cart and checkout subsystems.
All exceptions include code, message, and details for logging and for the
JSON error body returned by the API.

Exception Hierarchy:
    StorefrontError
    ├── CatalogError
    │   ├── CatalogUnavailableError
    │   └── ProductNotFoundError
    ├── CartError
    │   └── CartStorageError
    └── CheckoutError
        ├── CheckoutTransitionError
        ├── CheckoutValidationError
        └── OrderSubmissionError
"""
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
        status_code: HTTP status used when the error reaches the API layer
    """

    default_code: str = "STOREFRONT_ERROR"
    default_severity: str = "P2"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# CATALOG ERRORS
# =============================================================================

class CatalogError(StorefrontError):
    """Base exception for catalog source errors."""
    default_code = "CATALOG_ERROR"
    default_severity = "P2"
    status_code = 502


class CatalogUnavailableError(CatalogError):
    """Catalog query failed (network error or backend rejection)."""
    default_code = "CATALOG_UNAVAILABLE"
    status_code = 503

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "operation": operation,
            "status": status,
        })
        super().__init__(message, details=details, **kwargs)


class ProductNotFoundError(CatalogError):
    """No product with the requested id."""
    default_code = "PRODUCT_NOT_FOUND"
    default_severity = "P3"
    status_code = 404

    def __init__(self, product_id: str, **kwargs):
        details = kwargs.pop("details", {})
        details["product_id"] = product_id
        super().__init__(f"Product not found: {product_id}", details=details, **kwargs)


# =============================================================================
# CART ERRORS
# =============================================================================

class CartError(StorefrontError):
    """Base exception for cart errors."""
    default_code = "CART_ERROR"
    status_code = 400


class CartStorageError(CartError):
    """Persisting the cart to storage failed."""
    default_code = "CART_STORAGE_FAILED"
    default_severity = "P1"
    status_code = 500


# =============================================================================
# CHECKOUT ERRORS
# =============================================================================

class CheckoutError(StorefrontError):
    """Base exception for checkout errors."""
    default_code = "CHECKOUT_ERROR"
    status_code = 400


class CheckoutTransitionError(CheckoutError):
    """Requested step is not reachable from the current checkout step."""
    default_code = "CHECKOUT_INVALID_TRANSITION"
    default_severity = "P3"
    status_code = 409

    def __init__(
        self,
        message: str,
        current_step: Optional[str] = None,
        action: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "current_step": current_step,
            "action": action,
        })
        super().__init__(message, details=details, **kwargs)


class CheckoutValidationError(CheckoutError):
    """Required customer fields are missing."""
    default_code = "CHECKOUT_VALIDATION_FAILED"
    default_severity = "P3"
    status_code = 422

    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["missing_fields"] = missing_fields or []
        super().__init__(message, details=details, **kwargs)


class OrderSubmissionError(CheckoutError):
    """Order backend rejected the order or could not be reached."""
    default_code = "ORDER_SUBMISSION_FAILED"
    default_severity = "P1"
    status_code = 502

    def __init__(
        self,
        message: str,
        idempotency_key: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "idempotency_key": idempotency_key,
            "status": status,
        })
        super().__init__(message, details=details, **kwargs)
