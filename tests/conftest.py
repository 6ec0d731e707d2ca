"""
Shared test fixtures.

In-memory stores, a fake marketplace and a mock Supabase client, so no
test touches the network or a database.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest
from unittest.mock import MagicMock, patch
from typing import Generator

from integrations.stores import (
    InMemoryMappingStore,
    InMemoryProductRecordStore,
    InMemoryShippingRateStore,
    InMemoryTaxonomyStore,
)
from models.sync import RemoteResponse
from services.reference_cache_service import ReferenceDataCache
from services.sync_service import SyncService
from tests.factories import CategoryNodeFactory, ShippingBandFactory


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._data = [dict(row) for row in table.rows]
        self._limit = None
        self._deleting = False

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        rows = data if isinstance(data, list) else [data]
        self._table.inserted.extend(rows)
        self._data = rows
        return self

    def upsert(self, data, on_conflict: str = None):
        rows = data if isinstance(data, list) else [data]
        self._table.upserted.extend(rows)
        self._data = rows
        return self

    def eq(self, column, value):
        self._data = [row for row in self._data if row.get(column) == value]
        return self

    def delete(self):
        self._deleting = True
        return self

    def neq(self, column, value):
        self._data = [row for row in self._data if row.get(column) != value]
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._table.error is not None:
            raise self._table.error
        if self._deleting:
            self._table.deleted.extend(self._data)
            self._table.rows = [row for row in self._table.rows if row not in self._data]
        data = self._data[:self._limit] if self._limit is not None else self._data
        return MockSupabaseResponse(data=data)


class MockSupabaseTable:
    """Mock Supabase table with configurable rows and recorded writes."""

    def __init__(self, rows: list = None):
        self.rows = rows or []
        self.inserted: list[dict] = []
        self.upserted: list[dict] = []
        self.deleted: list[dict] = []
        self.error = None

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self).insert(data)

    def upsert(self, data, on_conflict: str = None):
        return MockSupabaseQuery(self).upsert(data, on_conflict=on_conflict)

    def delete(self):
        return MockSupabaseQuery(self).delete()


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list):
        """Configure rows for a table."""
        self._tables[table_name] = MockSupabaseTable(data)

    def fail_table(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self.table(table_name).error = error

    def table(self, name: str) -> MockSupabaseTable:
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FAKE MARKETPLACE
# ===================

class FakeMarketplace:
    """
    Marketplace double that records calls.

    Queue responses with create_responses / update_responses; when a queue
    runs dry every call succeeds.
    """

    def __init__(self):
        self.create_calls: list[dict] = []
        self.update_calls: list[tuple[str, dict]] = []
        self.fetch_calls: list[str] = []
        self.create_responses: list = []
        self.update_responses: list = []
        self.current_fields: dict = {}
        self._next_id = 900000

    @property
    def total_calls(self) -> int:
        return len(self.create_calls) + len(self.update_calls) + len(self.fetch_calls)

    def _next(self, queue: list, default: RemoteResponse) -> RemoteResponse:
        response = queue.pop(0) if queue else default
        if isinstance(response, Exception):
            raise response
        return response

    def create(self, fields: dict) -> RemoteResponse:
        self.create_calls.append(fields)
        self._next_id += 1
        return self._next(
            self.create_responses,
            RemoteResponse(status_code=0, message="SUCCESS", remote_id=str(self._next_id))
        )

    def update(self, remote_id: str, fields: dict) -> RemoteResponse:
        self.update_calls.append((remote_id, fields))
        return self._next(
            self.update_responses,
            RemoteResponse(status_code=0, message="SUCCESS", remote_id=remote_id)
        )

    def fetch_current(self, remote_id: str) -> dict:
        self.fetch_calls.append(remote_id)
        return dict(self.current_fields)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("product_records", [
                {"key": "V1", "title": "...", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any store built inside the test gets the mock from get_supabase_client().
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("integrations.supabase_stores.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def shipping_bands() -> list:
    return ShippingBandFactory.default_table()


@pytest.fixture
def taxonomy() -> list:
    return CategoryNodeFactory.appliance_tree()


@pytest.fixture
def mapping_store() -> InMemoryMappingStore:
    return InMemoryMappingStore()


@pytest.fixture
def record_store() -> InMemoryProductRecordStore:
    return InMemoryProductRecordStore()


@pytest.fixture
def reference_cache(mapping_store, taxonomy, shipping_bands) -> ReferenceDataCache:
    return ReferenceDataCache(
        mapping_store,
        InMemoryTaxonomyStore(taxonomy),
        InMemoryShippingRateStore(shipping_bands),
    )


@pytest.fixture
def marketplace() -> FakeMarketplace:
    return FakeMarketplace()


@pytest.fixture
def fake_sleep() -> MagicMock:
    return MagicMock()


@pytest.fixture
def sync_service(record_store, marketplace, reference_cache, fake_sleep) -> SyncService:
    """SyncService over in-memory stores with a fake marketplace and no real sleeping."""
    return SyncService(
        record_store=record_store,
        marketplace=marketplace,
        cache=reference_cache,
        sleep=fake_sleep,
    )


@pytest.fixture
def test_client(sync_service) -> Generator:
    """
    FastAPI test client whose routes use the in-memory sync_service.

    Usage:
        def test_endpoint(test_client):
            response = test_client.post("/api/sync/price-quote", json={...})
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("routes.sync.get_sync_service", return_value=sync_service):
        yield TestClient(app)
