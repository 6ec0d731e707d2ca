"""
Business logic services.

Each service handles one step of a listing sync.
"""

from services.reference_cache_service import ReferenceDataCache
from services.category_resolver_service import (
    CategoryResolverService,
    index_mappings,
    find_candidates,
)
from services.price_service import PriceService
from services.change_tracker_service import ChangeTrackerService, options_signature
from services.sync_service import SyncService, get_sync_service
from services.taxonomy_sync_service import (
    TaxonomySyncService,
    flatten_categories,
    get_taxonomy_sync_service,
)

__all__ = [
    "ReferenceDataCache",
    "CategoryResolverService",
    "index_mappings",
    "find_candidates",
    "PriceService",
    "ChangeTrackerService",
    "options_signature",
    "SyncService",
    "get_sync_service",
    "TaxonomySyncService",
    "flatten_categories",
    "get_taxonomy_sync_service",
]
