"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.category import (
    MatchType,
    CategoryNode,
    CategoryMapping,
    CategoryCandidate,
    CategoryResolution,
)
from models.pricing import (
    PricingConstants,
    ShippingRateBand,
    PriceQuote,
)
from models.sync import (
    SyncState,
    SyncAction,
    SyncStatus,
    ChangeFlag,
    ChangeSet,
    RemoteResponse,
    SyncDecision,
    BatchSummary,
    BatchResult,
    PriceQuoteRequest,
    ResolveCategoryRequest,
)
from models.product import (
    ProductRecord,
    OBSERVED_FIELDS,
    PROTECTED_FIELDS,
    is_blank,
    SyncRunRequest,
)

__all__ = [
    # Base
    "BaseSchema",

    # Category
    "MatchType",
    "CategoryNode",
    "CategoryMapping",
    "CategoryCandidate",
    "CategoryResolution",

    # Pricing
    "PricingConstants",
    "ShippingRateBand",
    "PriceQuote",

    # Sync
    "SyncState",
    "SyncAction",
    "SyncStatus",
    "ChangeFlag",
    "ChangeSet",
    "RemoteResponse",
    "SyncDecision",
    "BatchSummary",
    "BatchResult",
    "PriceQuoteRequest",
    "ResolveCategoryRequest",

    # Product
    "ProductRecord",
    "OBSERVED_FIELDS",
    "PROTECTED_FIELDS",
    "is_blank",
    "SyncRunRequest",
]
