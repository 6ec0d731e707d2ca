"""
Unit tests for ReferenceDataCache.

Run: pytest tests/unit/test_reference_cache_service.py -v
"""

import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from exceptions import ReferenceDataUnavailableError
from services.reference_cache_service import ReferenceDataCache
from tests.factories import CategoryNodeFactory, MappingFactory, ShippingBandFactory


@pytest.fixture
def stores():
    mapping_store = MagicMock()
    mapping_store.get_all.return_value = [MappingFactory.manual()]
    taxonomy_store = MagicMock()
    taxonomy_store.get_all.return_value = CategoryNodeFactory.appliance_tree()
    rate_store = MagicMock()
    rate_store.get_all.return_value = [
        ShippingBandFactory.create("1.01", "2.0", 150),
        ShippingBandFactory.create("0", "0.5", 80),
    ]
    return mapping_store, taxonomy_store, rate_store


class TestLazyLoading:
    """Stores are read once per run."""

    def test_nothing_loaded_until_first_access(self, stores):
        ReferenceDataCache(*stores)

        for store in stores:
            store.get_all.assert_not_called()

    def test_each_store_read_once(self, stores):
        # Arrange
        cache = ReferenceDataCache(*stores)

        # Act
        cache.mappings()
        cache.mappings()
        cache.taxonomy()
        cache.taxonomy()
        cache.shipping_bands()
        cache.shipping_bands()

        # Assert
        for store in stores:
            assert store.get_all.call_count == 1

    def test_reset_reloads(self, stores):
        mapping_store = stores[0]
        cache = ReferenceDataCache(*stores)
        cache.mappings()

        cache.reset()
        cache.mappings()

        assert mapping_store.get_all.call_count == 2

    def test_recorded_mapping_visible_without_reload(self, stores):
        # Arrange
        mapping_store = stores[0]
        cache = ReferenceDataCache(*stores)

        # Act
        cache.record_mapping(MappingFactory.auto(source_key="A > B"))

        # Assert
        assert [m.source_key for m in cache.mappings()] == ["가전 > 냉장고 > 양문형", "A > B"]
        assert mapping_store.get_all.call_count == 1


class TestShippingBands:
    """Tests for ReferenceDataCache.shipping_bands()"""

    def test_sorted_by_lower_bound(self, stores):
        bands = ReferenceDataCache(*stores).shipping_bands()

        assert [band.lower_kg for band in bands] == [Decimal("0"), Decimal("1.01")]

    def test_store_error_raises_unavailable(self, stores):
        stores[2].get_all.side_effect = RuntimeError("file missing")

        with pytest.raises(ReferenceDataUnavailableError) as exc:
            ReferenceDataCache(*stores).shipping_bands()

        assert "file missing" in exc.value.message

    def test_empty_table_raises_unavailable(self, stores):
        stores[2].get_all.return_value = []

        with pytest.raises(ReferenceDataUnavailableError):
            ReferenceDataCache(*stores).shipping_bands()
