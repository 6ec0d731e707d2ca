"""
Unit tests for the marketplace API client.

Run: pytest tests/unit/test_marketplace_client.py -v
"""

import json
import pytest
import requests
from unittest.mock import MagicMock

from exceptions import RemoteCallFailure
from integrations.marketplace_client import (
    API_VERSION,
    CATEGORY_API_VERSION,
    CATEGORY_METHOD,
    CREATE_METHOD,
    MarketplaceClient,
    extract_created_id,
    mask_key,
    to_params,
)


def http_response(envelope: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = envelope
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(session) -> MarketplaceClient:
    return MarketplaceClient(
        base_url="https://api.example.com/GMKT.INC.Front.QAPIService/ebayjapan.qapi/",
        api_key="abcdefgh12345678wxyz",
        timeout=5,
        session=session,
    )


class TestCreate:
    """Tests for MarketplaceClient.create()"""

    def test_success_extracts_created_id(self, client, session):
        # Arrange
        session.post.return_value = http_response({
            "ResultCode": 0, "ResultMsg": "SUCCESS", "ResultObject": {"GdNo": 1234567}
        })

        # Act
        response = client.create({"title": "Fridge", "sale_price": "2615"})

        # Assert
        assert response.ok is True
        assert response.remote_id == "1234567"

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url.endswith(CREATE_METHOD)
        assert kwargs["data"]["ItemTitle"] == "Fridge"
        assert kwargs["data"]["ItemPrice"] == "2615"
        assert kwargs["headers"]["GiosisCertificationKey"] == "abcdefgh12345678wxyz"
        assert kwargs["timeout"] == 5

    def test_non_zero_result_code_is_not_ok(self, client, session):
        session.post.return_value = http_response({
            "ResultCode": "-10", "ResultMsg": "Invalid category"
        })

        response = client.create({"title": "Fridge"})

        assert response.ok is False
        assert response.status_code == -10
        assert response.message == "Invalid category"

    def test_timeout_raises_remote_failure(self, client, session):
        session.post.side_effect = requests.exceptions.Timeout()

        with pytest.raises(RemoteCallFailure) as exc:
            client.create({"title": "Fridge"})

        assert "timed out" in exc.value.message

    def test_connection_error_raises_remote_failure(self, client, session):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(RemoteCallFailure):
            client.create({"title": "Fridge"})

    def test_invalid_json_raises_remote_failure(self, client, session):
        response = http_response({})
        response.json.side_effect = ValueError("not json")
        response.text = "<html>maintenance</html>"
        session.post.return_value = response

        with pytest.raises(RemoteCallFailure):
            client.create({"title": "Fridge"})

    def test_unconfigured_client_raises(self, session):
        client = MarketplaceClient(base_url="", api_key="", session=session)
        client.base_url = ""

        with pytest.raises(RemoteCallFailure):
            client.create({"title": "Fridge"})

        session.post.assert_not_called()


class TestUpdateAndFetch:
    """Tests for update() and fetch_current()"""

    def test_update_sends_item_code(self, client, session):
        session.post.return_value = http_response({"ResultCode": 0, "ResultMsg": "SUCCESS"})

        response = client.update("555001", {"sale_price": "2769"})

        assert response.ok is True
        assert response.remote_id == "555001"
        assert session.post.call_args.kwargs["data"]["ItemCode"] == "555001"

    def test_fetch_maps_params_to_fields(self, client, session):
        session.post.return_value = http_response({
            "ResultCode": 0,
            "ResultObject": [{"ItemTitle": "Remote title", "ShippingNo": "471554", "Unknown": "x", "SecondSubCat": ""}],
        })

        fields = client.fetch_current("555001")

        assert fields == {"title": "Remote title", "shipping_no": "471554"}

    def test_fetch_failure_raises(self, client, session):
        session.post.return_value = http_response({"ResultCode": -1, "ResultMsg": "Not found"})

        with pytest.raises(RemoteCallFailure) as exc:
            client.fetch_current("555001")

        assert exc.value.result_code == -1


class TestFetchCategories:
    """Tests for MarketplaceClient.fetch_categories()"""

    def test_returns_envelope_and_uses_category_version(self, client, session):
        # Arrange
        envelope = {"ResultCode": 0, "ResultObject": [{"CATE_S_CD": "100", "CATE_S_NM": "Home"}]}
        session.post.return_value = http_response(envelope)

        # Act
        result = client.fetch_categories()

        # Assert
        assert result == envelope
        assert session.post.call_args.args[0].endswith(CATEGORY_METHOD)
        assert session.post.call_args.kwargs["headers"]["QAPIVersion"] == CATEGORY_API_VERSION

    def test_other_calls_keep_default_version(self, client, session):
        session.post.return_value = http_response({"ResultCode": 0})

        client.update("555001", {"title": "Fridge"})

        assert session.post.call_args.kwargs["headers"]["QAPIVersion"] == API_VERSION

    def test_error_code_raises(self, client, session):
        session.post.return_value = http_response({"ResultCode": "-999", "ResultMsg": "Unauthorized"})

        with pytest.raises(RemoteCallFailure) as exc:
            client.fetch_categories()

        assert exc.value.result_code == -999
        assert exc.value.message == "Unauthorized"

    def test_envelope_without_result_code_accepted(self, client, session):
        session.post.return_value = http_response({"Categories": []})

        assert client.fetch_categories() == {"Categories": []}


class TestHelpers:
    """Module helpers"""

    def test_to_params_serializes_collections(self):
        params = to_params({"options": {"type": "Color", "values": ["빨강"]}, "extra_images": []})

        assert json.loads(params["Options"]) == {"type": "Color", "values": ["빨강"]}
        assert params["ExtraImages"] == "[]"

    @pytest.mark.parametrize("result_object,expected", [
        ({"GoodsNo": "1"}, "1"),
        ([{"ItemNo": 2}], "2"),
        ("3", "3"),
        ({}, None),
        (None, None),
    ])
    def test_extract_created_id(self, result_object, expected):
        assert extract_created_id(result_object) == expected

    def test_mask_key(self):
        assert mask_key("abcdefgh12345678wxyz") == "abcdefgh...wxyz"
        assert mask_key("short") == "***masked***"
