"""
Custom exception classes for the sync engine.

Every error carries a stable code so batch reports and API responses
can be grouped by cause.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SHIPPING_BAND_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class LookupFailure(AppError):
    """Reference data lookup failed (404)."""

    def __init__(
        self,
        message: str,
        code: str = "LOOKUP_FAILURE",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=404,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# PRODUCT FIELD ERRORS
# ===================

class MissingFieldError(ValidationError):
    """A mandatory business field is empty."""

    def __init__(self, field: str):
        super().__init__(
            code="MISSING_FIELD",
            message=f"Missing {field}",
            details={"field": field}
        )
        self.field = field


class InvalidCostPriceError(ValidationError):
    """Cost price is not a finite positive number."""

    def __init__(self, raw: Any):
        super().__init__(
            code="INVALID_COST_PRICE",
            message="Cost price missing or invalid",
            details={"provided": "" if raw is None else str(raw)}
        )


class InvalidWeightError(ValidationError):
    """Weight is not a finite positive number."""

    def __init__(self, raw: Any):
        super().__init__(
            code="INVALID_WEIGHT",
            message="Weight missing or invalid",
            details={"provided": "" if raw is None else str(raw)}
        )


class FieldResolutionError(ValidationError):
    """No source could supply a mandatory update field."""

    def __init__(self, field: str, sources: list[str]):
        super().__init__(
            code="FIELD_UNRESOLVED",
            message=f"Required field '{field}' could not be resolved",
            details={"field": field, "sources_tried": sources}
        )
        self.field = field


# ===================
# REFERENCE DATA ERRORS
# ===================

class ShippingBandNotFoundError(LookupFailure):
    """No shipping band contains the given weight."""

    def __init__(self, weight_kg: Any):
        super().__init__(
            code="SHIPPING_BAND_NOT_FOUND",
            message=f"Shipping fee not found for weightKg={weight_kg}",
            details={"weight_kg": str(weight_kg)}
        )


class ReferenceDataUnavailableError(LookupFailure):
    """A reference store could not be read or returned nothing usable."""

    def __init__(self, store: str, reason: str):
        super().__init__(
            code="REFERENCE_DATA_UNAVAILABLE",
            message=f"{store} could not be loaded: {reason}",
            details={"store": store}
        )


# ===================
# MARKETPLACE ERRORS
# ===================

class RemoteCallFailure(ExternalServiceError):
    """Marketplace API returned a non-success result or did not answer."""

    def __init__(
        self,
        operation: str,
        message: str,
        result_code: Optional[int] = None
    ):
        super().__init__(
            service="marketplace",
            message=message,
            details={"operation": operation, "result_code": result_code}
        )
        self.operation = operation
        self.result_code = result_code


# ===================
# FILE PARSER ERRORS
# ===================

class ShippingRateParseError(ValidationError):
    """Shipping rate file could not be parsed."""

    def __init__(
        self,
        message: str = "Failed to parse shipping rate file",
        details: Optional[dict] = None
    ):
        super().__init__(
            code="SHIPPING_RATE_PARSE_ERROR",
            message=message,
            details=details
        )


class ProductFeedParseError(ValidationError):
    """Product feed file could not be parsed."""

    def __init__(
        self,
        message: str = "Failed to parse product feed",
        details: Optional[dict] = None
    ):
        super().__init__(
            code="PRODUCT_FEED_PARSE_ERROR",
            message=message,
            details=details
        )
