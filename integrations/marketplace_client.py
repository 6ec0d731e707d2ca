"""
Marketplace listing API client.

Sends form-encoded POSTs to the seller API and normalizes its
ResultCode / ResultMsg / ResultObject envelope into RemoteResponse.
Network errors and timeouts surface as RemoteCallFailure.
"""

import json
from typing import Any, Optional
import requests
import structlog

from config import settings
from exceptions import RemoteCallFailure
from models.sync import RemoteResponse

logger = structlog.get_logger(__name__)


CREATE_METHOD = "ItemsBasic.SetNewGoods"
UPDATE_METHOD = "ItemsBasic.UpdateGoods"
LOOKUP_METHOD = "ItemsLookup.GetItemDetailInfo"
# Method name is spelled this way by the API
CATEGORY_METHOD = "CommonInfoLookup.GetCatagoryListAll"

API_VERSION = "1.1"
CATEGORY_API_VERSION = "1.0"

# Payload field → API parameter
FIELD_PARAMS = {
    "category_id": "SecondSubCat",
    "title": "ItemTitle",
    "sale_price": "ItemPrice",
    "quantity": "ItemQty",
    "shipping_no": "ShippingNo",
    "standard_image": "StandardImage",
    "extra_images": "ExtraImages",
    "description": "ItemDescription",
    "production_place_type": "ProductionPlaceType",
    "production_place": "ProductionPlace",
    "weight_kg": "Weight",
    "seller_code": "SellerCode",
    "options": "Options",
}

PARAM_FIELDS = {param: field for field, param in FIELD_PARAMS.items()}

# Keys that may carry the new listing id, in priority order
CREATED_ID_KEYS = ("GdNo", "GoodsNo", "ItemNo", "itemNo")


def mask_key(key: Optional[str]) -> str:
    """First 8 and last 4 characters only."""
    if not key or len(key) < 12:
        return "***masked***"
    return f"{key[:8]}...{key[-4:]}"


def to_params(fields: dict) -> dict[str, str]:
    """Map payload fields to API parameters, all values as text."""
    params = {}
    for field, value in fields.items():
        name = FIELD_PARAMS.get(field, field)
        if isinstance(value, (dict, list)):
            params[name] = json.dumps(value, ensure_ascii=False)
        elif value is None:
            params[name] = ""
        else:
            params[name] = str(value)
    return params


def extract_created_id(result_object: Any) -> Optional[str]:
    """Pull the created listing id out of a ResultObject."""
    if isinstance(result_object, list):
        result_object = result_object[0] if result_object else None
    if isinstance(result_object, dict):
        for key in CREATED_ID_KEYS:
            value = result_object.get(key)
            if value not in (None, ""):
                return str(value)
    elif result_object not in (None, ""):
        return str(result_object)
    return None


class MarketplaceClient:
    """
    Seller API client for listing create/update/lookup.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.marketplace_api_url or "").rstrip("/")
        self.api_key = api_key or settings.marketplace_api_key
        self.timeout = timeout or settings.marketplace_timeout_seconds
        self.session = session or requests.Session()

    def _post(self, operation: str, method: str, params: dict, version: str = API_VERSION) -> dict:
        if not self.base_url or not self.api_key:
            raise RemoteCallFailure(operation, "Marketplace API not configured")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
            "QAPIVersion": version,
            "GiosisCertificationKey": self.api_key,
        }
        body = {**params, "returnType": "application/json"}

        logger.info(
            "marketplace_request",
            method=method,
            api_key=mask_key(self.api_key),
            params=sorted(params)
        )

        try:
            response = self.session.post(
                f"{self.base_url}/{method}",
                data=body,
                headers=headers,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            logger.error("marketplace_timeout", method=method, timeout=self.timeout)
            raise RemoteCallFailure(operation, f"Request timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.error("marketplace_request_failed", method=method, error=str(e))
            raise RemoteCallFailure(operation, f"Request failed: {e}")

        try:
            return response.json()
        except ValueError:
            logger.error("marketplace_invalid_response", method=method, body=response.text[:200])
            raise RemoteCallFailure(operation, "Response was not valid JSON")

    def _to_response(self, envelope: dict, remote_id: Optional[str] = None) -> RemoteResponse:
        try:
            code = int(envelope.get("ResultCode", -1))
        except (TypeError, ValueError):
            code = -1

        result_object = envelope.get("ResultObject")
        return RemoteResponse(
            status_code=code,
            message=str(envelope.get("ResultMsg") or ""),
            remote_id=remote_id,
            data=result_object if isinstance(result_object, dict) else {"result": result_object},
        )

    def create(self, fields: dict) -> RemoteResponse:
        """Create a listing. remote_id is set on success."""
        envelope = self._post("create", CREATE_METHOD, to_params(fields))
        remote_id = extract_created_id(envelope.get("ResultObject"))
        response = self._to_response(envelope, remote_id)

        logger.info(
            "marketplace_create_result",
            status_code=response.status_code,
            message=response.message,
            remote_id=remote_id
        )
        return response

    def update(self, remote_id: str, fields: dict) -> RemoteResponse:
        """Update an existing listing."""
        params = {"ItemCode": remote_id, **to_params(fields)}
        envelope = self._post("update", UPDATE_METHOD, params)
        response = self._to_response(envelope, remote_id)

        logger.info(
            "marketplace_update_result",
            remote_id=remote_id,
            status_code=response.status_code,
            message=response.message
        )
        return response

    def fetch_current(self, remote_id: str) -> dict:
        """
        Current listing values as payload fields.

        Raises:
            RemoteCallFailure: Lookup failed or returned a non-success code
        """
        envelope = self._post("fetch", LOOKUP_METHOD, {"ItemCode": remote_id})
        response = self._to_response(envelope, remote_id)

        if not response.ok:
            raise RemoteCallFailure("fetch", response.message or "Lookup failed", response.status_code)

        result = envelope.get("ResultObject")
        if isinstance(result, list):
            result = result[0] if result else {}
        if not isinstance(result, dict):
            return {}

        return {
            PARAM_FIELDS[param]: value
            for param, value in result.items()
            if param in PARAM_FIELDS and value not in (None, "")
        }

    def fetch_categories(self) -> dict:
        """
        Full target category tree, as the raw response envelope.

        Raises:
            RemoteCallFailure: Call failed or returned a non-zero ResultCode
        """
        envelope = self._post("categories", CATEGORY_METHOD, {}, version=CATEGORY_API_VERSION)

        code = envelope.get("ResultCode") if isinstance(envelope, dict) else None
        if code not in (None, "", 0, "0"):
            message = envelope.get("ResultMsg") or envelope.get("resultMsg") or "Unknown error"
            logger.error("marketplace_categories_failed", status_code=code, message=message)
            try:
                status_code = int(code)
            except (TypeError, ValueError):
                status_code = None
            raise RemoteCallFailure("categories", str(message), status_code)

        logger.info("marketplace_categories_fetched")
        return envelope
