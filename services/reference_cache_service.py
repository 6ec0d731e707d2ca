"""
Run-scoped cache of read-only reference data.

Mapping dictionary, target taxonomy and shipping bands are loaded lazily
on first access and kept for the lifetime of one batch run. The cache is
owned by the sync service that runs the batch; call reset() before
starting a fresh run.
"""

from typing import Optional
import structlog

from exceptions import ReferenceDataUnavailableError
from integrations.stores import MappingStore, ShippingRateStore, TaxonomyStore
from models.category import CategoryMapping, CategoryNode
from models.pricing import ShippingRateBand

logger = structlog.get_logger(__name__)


class ReferenceDataCache:
    """Lazily loaded reference data for one run."""

    def __init__(
        self,
        mapping_store: MappingStore,
        taxonomy_store: TaxonomyStore,
        shipping_rate_store: ShippingRateStore,
    ):
        self.mapping_store = mapping_store
        self.taxonomy_store = taxonomy_store
        self.shipping_rate_store = shipping_rate_store

        self._mappings: Optional[list[CategoryMapping]] = None
        self._taxonomy: Optional[list[CategoryNode]] = None
        self._bands: Optional[list[ShippingRateBand]] = None

    def reset(self) -> None:
        """Drop everything loaded so the next access reads the stores again."""
        self._mappings = None
        self._taxonomy = None
        self._bands = None
        logger.info("reference_cache_reset")

    # ===================
    # MAPPING DICTIONARY
    # ===================

    def mappings(self) -> list[CategoryMapping]:
        if self._mappings is None:
            self._mappings = list(self.mapping_store.get_all())
            logger.info("mappings_loaded", count=len(self._mappings))
        return self._mappings

    def record_mapping(self, mapping: CategoryMapping) -> None:
        """Add a row this run appended to the store."""
        self.mappings().append(mapping)

    # ===================
    # TAXONOMY
    # ===================

    def taxonomy(self) -> list[CategoryNode]:
        if self._taxonomy is None:
            self._taxonomy = list(self.taxonomy_store.get_all())
            logger.info("taxonomy_loaded", count=len(self._taxonomy))
        return self._taxonomy

    # ===================
    # SHIPPING BANDS
    # ===================

    def shipping_bands(self) -> list[ShippingRateBand]:
        """
        Shipping bands sorted ascending by lower bound.

        Raises:
            ReferenceDataUnavailableError: Store failed or returned no bands
        """
        if self._bands is None:
            try:
                bands = list(self.shipping_rate_store.get_all())
            except Exception as e:
                logger.error("shipping_rates_load_failed", error=str(e))
                raise ReferenceDataUnavailableError("Shipping rate table", str(e))

            if not bands:
                raise ReferenceDataUnavailableError("Shipping rate table", "no bands found")

            self._bands = sorted(bands, key=lambda band: band.lower_kg)
            logger.info("shipping_rates_loaded", count=len(self._bands))

        return self._bands
