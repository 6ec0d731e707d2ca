"""
Storage interfaces consumed by the sync engine, plus in-memory and
file-backed implementations.

The engine only ever talks to these interfaces. In-memory stores back dry
runs and tests; Supabase-backed stores live in integrations.supabase_stores.
"""

from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, Union
import structlog

from models.category import CategoryMapping, CategoryNode
from models.pricing import ShippingRateBand
from models.product import ProductRecord, is_blank
from models.sync import RemoteResponse
from parsers.shipping_rate_parser import parse_shipping_rates

logger = structlog.get_logger(__name__)


# ===================
# INTERFACES
# ===================

class MappingStore(Protocol):
    """Category mapping dictionary. Duplicate keys allowed."""

    def get_all(self) -> list[CategoryMapping]: ...

    def append(self, mapping: CategoryMapping) -> None: ...


class TaxonomyStore(Protocol):
    """Target marketplace category tree. Read-only during a sync run, replaced by the category refresh."""

    def get_all(self) -> list[CategoryNode]: ...

    def replace_all(self, nodes: list[CategoryNode]) -> int: ...


class ShippingRateStore(Protocol):
    """Weight-banded shipping fees, read-only per run."""

    def get_all(self) -> list[ShippingRateBand]: ...


class ProductRecordStore(Protocol):
    """Per-product snapshots keyed by the record key."""

    def get_by_key(self, key: str) -> Optional[ProductRecord]: ...

    def upsert(self, key: str, fields: dict, preserve_fields: Iterable[str] = ()) -> ProductRecord: ...


class MarketplaceApi(Protocol):
    """Remote marketplace listing API."""

    def create(self, fields: dict) -> RemoteResponse: ...

    def update(self, remote_id: str, fields: dict) -> RemoteResponse: ...

    def fetch_current(self, remote_id: str) -> dict: ...


class CategoryApi(Protocol):
    """Remote marketplace category tree."""

    def fetch_categories(self) -> Any: ...


# ===================
# MERGE HELPER
# ===================

def merge_preserving(existing: dict, fields: dict, preserve_fields: Iterable[str]) -> dict:
    """
    Merge new fields over an existing row.

    New values win, except that a preserved column keeps its existing
    non-empty value when the new value is empty or absent.
    """
    merged = {**existing, **fields}
    for column in preserve_fields:
        if not is_blank(existing.get(column)) and is_blank(fields.get(column)):
            merged[column] = existing[column]
    return merged


# ===================
# IN-MEMORY STORES
# ===================

class InMemoryMappingStore:
    """Append-only list of mapping rows."""

    def __init__(self, rows: Optional[list[CategoryMapping]] = None):
        self.rows: list[CategoryMapping] = list(rows or [])

    def get_all(self) -> list[CategoryMapping]:
        return list(self.rows)

    def append(self, mapping: CategoryMapping) -> None:
        self.rows.append(mapping)


class InMemoryTaxonomyStore:
    def __init__(self, nodes: Optional[list[CategoryNode]] = None):
        self.nodes = list(nodes or [])

    def get_all(self) -> list[CategoryNode]:
        return list(self.nodes)

    def replace_all(self, nodes: list[CategoryNode]) -> int:
        self.nodes = list(nodes)
        return len(self.nodes)


class InMemoryShippingRateStore:
    def __init__(self, bands: Optional[list[ShippingRateBand]] = None):
        self.bands = list(bands or [])

    def get_all(self) -> list[ShippingRateBand]:
        return list(self.bands)


class InMemoryProductRecordStore:
    """Dict of record rows keyed by record key."""

    def __init__(self, records: Optional[list[ProductRecord]] = None):
        self.rows: dict[str, dict] = {}
        for record in records or []:
            self.rows[record.key] = record.to_store_fields()

    def get_by_key(self, key: str) -> Optional[ProductRecord]:
        row = self.rows.get(key)
        return ProductRecord(**row) if row is not None else None

    def upsert(self, key: str, fields: dict, preserve_fields: Iterable[str] = ()) -> ProductRecord:
        if not key:
            raise ValueError("Cannot upsert a record without a key")

        existing = self.rows.get(key, {})
        merged = merge_preserving(existing, fields, preserve_fields)
        record = ProductRecord(**merged)
        self.rows[key] = record.to_store_fields()

        logger.debug(
            "record_upserted",
            key=key,
            action="updated" if existing else "appended"
        )
        return record


# ===================
# FILE-BACKED STORES
# ===================

class FileShippingRateStore:
    """Shipping bands read from a csv/xlsx rate table."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get_all(self) -> list[ShippingRateBand]:
        return parse_shipping_rates(self.path)
