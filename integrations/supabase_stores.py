"""
Supabase-backed implementations of the sync engine's stores.

Tables:
    category_mappings   mapping dictionary rows (duplicate keys allowed)
    target_categories   target marketplace taxonomy
    shipping_rates      weight bands
    product_records     per-product snapshots keyed by "key"
"""

from typing import Iterable, Optional
import structlog

from config.database import get_supabase_client
from exceptions import DatabaseError
from integrations.stores import merge_preserving
from models.category import CategoryMapping, CategoryNode
from models.pricing import ShippingRateBand
from models.product import ProductRecord

logger = structlog.get_logger(__name__)

# Rows per insert when the taxonomy is replaced
TAXONOMY_BATCH_SIZE = 500


class SupabaseMappingStore:
    """Mapping dictionary in the category_mappings table."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "category_mappings"

    def get_all(self) -> list[CategoryMapping]:
        try:
            result = self.db.table(self.table).select("*").execute()
        except Exception as e:
            logger.error("get_mappings_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [CategoryMapping(**row) for row in result.data]

    def append(self, mapping: CategoryMapping) -> None:
        try:
            self.db.table(self.table).insert(mapping.model_dump(mode="json")).execute()
        except Exception as e:
            logger.error("append_mapping_failed", key=mapping.source_key, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.debug("mapping_appended", key=mapping.source_key, match_type=mapping.match_type.value)


class SupabaseTaxonomyStore:
    """Target taxonomy in the target_categories table."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "target_categories"

    def get_all(self) -> list[CategoryNode]:
        try:
            result = self.db.table(self.table).select("*").order("sort_order").execute()
        except Exception as e:
            logger.error("get_taxonomy_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [CategoryNode(**row) for row in result.data]

    def replace_all(self, nodes: list[CategoryNode]) -> int:
        """
        Overwrite the table with a freshly fetched tree.

        Returns:
            Number of rows written
        """
        rows = [node.model_dump(mode="json") for node in nodes]

        try:
            # Supabase refuses an unfiltered delete
            self.db.table(self.table).delete().neq("id", "").execute()
            for start in range(0, len(rows), TAXONOMY_BATCH_SIZE):
                self.db.table(self.table).insert(rows[start:start + TAXONOMY_BATCH_SIZE]).execute()
        except Exception as e:
            logger.error("replace_taxonomy_failed", rows=len(rows), error=str(e))
            raise DatabaseError("replace", str(e))

        logger.info("taxonomy_replaced", rows=len(rows))
        return len(rows)


class SupabaseShippingRateStore:
    """Weight bands in the shipping_rates table."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "shipping_rates"

    def get_all(self) -> list[ShippingRateBand]:
        try:
            result = self.db.table(self.table).select("*").order("lower_kg").execute()
        except Exception as e:
            logger.error("get_shipping_rates_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [ShippingRateBand(**row) for row in result.data]


class SupabaseProductRecordStore:
    """Product snapshots in the product_records table."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "product_records"

    def _get_row(self, key: str) -> Optional[dict]:
        try:
            result = self.db.table(self.table).select("*").eq("key", key).limit(1).execute()
        except Exception as e:
            logger.error("get_record_failed", key=key, error=str(e))
            raise DatabaseError("select", str(e))

        return result.data[0] if result.data else None

    def get_by_key(self, key: str) -> Optional[ProductRecord]:
        row = self._get_row(key)
        return ProductRecord(**row) if row is not None else None

    def upsert(self, key: str, fields: dict, preserve_fields: Iterable[str] = ()) -> ProductRecord:
        """
        Insert or update a snapshot.

        Preserved columns keep their stored value when the new one is empty.
        """
        if not key:
            raise DatabaseError("upsert", "record key is required")

        existing = self._get_row(key) or {}
        merged = merge_preserving(existing, fields, preserve_fields)
        record = ProductRecord(**merged)

        row = {**record.to_store_fields(), "key": key}

        try:
            self.db.table(self.table).upsert(row, on_conflict="key").execute()
        except Exception as e:
            logger.error("upsert_record_failed", key=key, error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.debug(
            "record_upserted",
            key=key,
            action="updated" if existing else "appended"
        )
        return record
