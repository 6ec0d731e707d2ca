"""
Custom exceptions module.

Error codes are stable and appear in sync reports and API responses.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    LookupFailure,
    ExternalServiceError,
    DatabaseError,

    # Product fields
    MissingFieldError,
    InvalidCostPriceError,
    InvalidWeightError,
    FieldResolutionError,

    # Reference data
    ShippingBandNotFoundError,
    ReferenceDataUnavailableError,

    # Marketplace
    RemoteCallFailure,

    # File parsers
    ShippingRateParseError,
    ProductFeedParseError,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "LookupFailure",
    "ExternalServiceError",
    "DatabaseError",

    # Product fields
    "MissingFieldError",
    "InvalidCostPriceError",
    "InvalidWeightError",
    "FieldResolutionError",

    # Reference data
    "ShippingBandNotFoundError",
    "ReferenceDataUnavailableError",

    # Marketplace
    "RemoteCallFailure",

    # File parsers
    "ShippingRateParseError",
    "ProductFeedParseError",
]
