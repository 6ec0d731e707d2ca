"""
Unit tests for ChangeTrackerService.

Run: pytest tests/unit/test_change_tracker_service.py -v
"""

import json
import pytest

from models.sync import ChangeFlag
from services.change_tracker_service import ChangeTrackerService, options_signature
from tests.factories import ProductRecordFactory


OPTIONS = {"type": "Color", "values": ["Red", "Blue", "Green"]}


@pytest.fixture
def tracker() -> ChangeTrackerService:
    return ChangeTrackerService()


class TestOptionsSignature:
    """Tests for options_signature()"""

    def test_value_order_does_not_matter(self):
        reordered = {"values": ["green", "RED", "Blue"], "type": "color"}
        assert options_signature(OPTIONS) == options_signature(reordered)

    def test_json_text_and_dict_hash_the_same(self):
        assert options_signature(json.dumps(OPTIONS)) == options_signature(OPTIONS)

    def test_different_values_differ(self):
        other = {"type": "Color", "values": ["Red", "Blue"]}
        assert options_signature(OPTIONS) != options_signature(other)

    @pytest.mark.parametrize("empty", [None, "", "  ", [], {}])
    def test_empty_options_have_no_signature(self, empty):
        assert options_signature(empty) == ""

    def test_invalid_json_hashed_as_text(self):
        signature = options_signature("Red / Blue")
        assert len(signature) == 64
        assert signature == options_signature("red / blue")


class TestDiff:
    """Tests for ChangeTrackerService.diff()"""

    def test_identical_records_have_no_flags(self, tracker):
        record = ProductRecordFactory.create(options=OPTIONS)

        changes = tracker.diff(record, record)

        assert changes.flags == set()
        assert changes.has_changes is False

    def test_price_increase(self, tracker):
        # Arrange
        previous = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5000")
        observed = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5500")

        # Act
        changes = tracker.diff(previous, observed)

        # Assert
        assert changes.sorted_flags() == ["PRICE_UP"]
        assert changes.previous_price == "5000"

    def test_price_decrease_only(self, tracker):
        previous = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5,500", options=OPTIONS)
        observed = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5000", options=OPTIONS)

        changes = tracker.diff(previous, observed)

        assert changes.flags == {ChangeFlag.PRICE_DOWN}
        assert changes.previous_price == "5500"

    def test_options_change_only(self, tracker):
        previous = ProductRecordFactory.create(vendor_item_id="V1", options=OPTIONS)
        observed = ProductRecordFactory.create(
            vendor_item_id="V1",
            options={"type": "Color", "values": ["Black"]},
        )

        changes = tracker.diff(previous, observed)

        assert changes.flags == {ChangeFlag.OPTIONS_CHANGED}
        assert changes.previous_signature == options_signature(OPTIONS)

    def test_price_and_options_change(self, tracker):
        previous = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5000", options=OPTIONS)
        observed = ProductRecordFactory.create(
            vendor_item_id="V1",
            cost_price="4000",
            options={"type": "Size", "values": ["L"]},
        )

        changes = tracker.diff(previous, observed)

        assert changes.flags == {ChangeFlag.PRICE_DOWN, ChangeFlag.OPTIONS_CHANGED}

    @pytest.mark.parametrize("old_price", ["", "0", "n/a"])
    def test_missing_baseline_price_is_not_a_change(self, tracker, old_price):
        previous = ProductRecordFactory.create(vendor_item_id="V1", cost_price=old_price)
        observed = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5000")

        assert tracker.diff(previous, observed).has_changes is False

    def test_missing_baseline_options_is_not_a_change(self, tracker):
        previous = ProductRecordFactory.create(vendor_item_id="V1")
        observed = ProductRecordFactory.create(vendor_item_id="V1", options=OPTIONS)

        assert tracker.diff(previous, observed).has_changes is False

    def test_stored_signature_used_as_baseline(self, tracker):
        previous = ProductRecordFactory.create(vendor_item_id="V1", options_signature="abc123")
        observed = ProductRecordFactory.create(vendor_item_id="V1", options=OPTIONS)

        changes = tracker.diff(previous, observed)

        assert changes.flags == {ChangeFlag.OPTIONS_CHANGED}
        assert changes.previous_signature == "abc123"

    def test_first_observation_has_no_flags(self, tracker):
        assert tracker.diff(None, ProductRecordFactory.create()).has_changes is False


class TestApply:
    """Tests for ChangeTrackerService.apply()"""

    def test_marks_record_dirty_on_change(self, tracker):
        # Arrange
        previous = ProductRecordFactory.create_listed(vendor_item_id="V1", cost_price="5000")
        observed = ProductRecordFactory.create(vendor_item_id="V1", cost_price="5500")

        # Act
        merged = tracker.apply(previous, observed)

        # Assert
        assert merged.needs_update is True
        assert merged.change_flags == [ChangeFlag.PRICE_UP]
        assert merged.previous_price == "5000"
        assert merged.cost_price == "5500"

    def test_protected_fields_survive_empty_observation(self, tracker):
        previous = ProductRecordFactory.create_listed(vendor_item_id="V1", remote_id="777")
        observed = ProductRecordFactory.create(vendor_item_id="V1")

        merged = tracker.apply(previous, observed)

        assert merged.remote_id == "777"
        assert merged.sale_price == 2615
        assert merged.target_category_id == "320001111"

    def test_empty_observed_field_keeps_stored_value(self, tracker):
        previous = ProductRecordFactory.create(vendor_item_id="V1", title="Old title")
        observed = ProductRecordFactory.create(vendor_item_id="V1", title="")

        assert tracker.apply(previous, observed).title == "Old title"

    def test_pending_flags_kept_until_synced(self, tracker):
        previous = ProductRecordFactory.create_listed(
            vendor_item_id="V1",
            needs_update=True,
            change_flags=["OPTIONS_CHANGED"],
        )
        observed = ProductRecordFactory.create(vendor_item_id="V1")

        merged = tracker.apply(previous, observed)

        assert merged.needs_update is True
        assert merged.change_flags == [ChangeFlag.OPTIONS_CHANGED]

    def test_first_observation_gets_signature(self, tracker):
        observed = ProductRecordFactory.create(options=OPTIONS)

        merged = tracker.apply(None, observed)

        assert merged.options_signature == options_signature(OPTIONS)
        assert merged.needs_update is False
