"""
Product record schema.

A ProductRecord is both the scraped observation fed into a sync pass and
the snapshot persisted afterwards. Observed fields come from the source
catalog; the rest are written back by the sync engine.
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from models.base import BaseSchema
from models.category import MatchType
from models.sync import ChangeFlag, SyncStatus


# Fields a new observation may overwrite
OBSERVED_FIELDS = (
    "vendor_item_id",
    "item_id",
    "product_id",
    "source_category_id",
    "product_url",
    "title",
    "cost_price",
    "weight_kg",
    "standard_image",
    "extra_images",
    "options",
    "description",
    "category_path2",
    "category_path3",
)

# Fields that must never be blanked by an empty new value
PROTECTED_FIELDS = (
    "remote_id",
    "target_category_id",
    "sale_price",
    "seller_code",
)

_TEXT_FIELDS = (
    "vendor_item_id",
    "item_id",
    "product_id",
    "source_category_id",
    "product_url",
    "title",
    "cost_price",
    "weight_kg",
    "standard_image",
    "description",
    "category_path2",
    "category_path3",
    "target_category_id",
    "category_key_used",
    "options_signature",
    "previous_price",
    "sync_message",
    "remote_id",
    "seller_code",
)


def is_blank(value: Any) -> bool:
    """True for None, empty strings, and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, set, tuple)):
        return len(value) == 0
    return False


class ProductRecord(BaseSchema):
    """Scraped product plus its sync bookkeeping."""

    # Identity
    vendor_item_id: str = ""
    item_id: str = ""
    product_id: str = ""

    # Observed source data
    source_category_id: str = ""
    product_url: str = ""
    title: str = ""
    cost_price: str = Field("", description="Raw source-currency cost, may carry separators")
    weight_kg: str = Field("", description="Raw weight in kg")
    standard_image: str = ""
    extra_images: list[str] = Field(default_factory=list)
    options: Optional[Any] = None
    description: str = ""
    category_path2: str = ""
    category_path3: str = ""

    # Derived and persisted by the sync engine
    target_category_id: str = ""
    category_match_type: Optional[MatchType] = None
    category_confidence: Optional[float] = None
    category_key_used: str = ""
    sale_price: Optional[int] = None
    options_signature: str = ""
    previous_price: str = ""
    change_flags: list[ChangeFlag] = Field(default_factory=list)
    needs_update: bool = False
    sync_status: Optional[SyncStatus] = None
    sync_message: str = ""
    remote_id: str = ""
    seller_code: str = ""
    last_synced_at: Optional[datetime] = None

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def to_text(cls, v):
        """Feeds deliver ids and numbers as int/float; keep them as text."""
        if v is None:
            return ""
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return str(v) if not isinstance(v, str) else v

    @field_validator("extra_images", mode="before")
    @classmethod
    def images_from_json(cls, v):
        if v in (None, ""):
            return []
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except ValueError:
                return [part.strip() for part in v.split("|") if part.strip()]
            return parsed if isinstance(parsed, list) else []
        return v

    @field_validator("change_flags", mode="before")
    @classmethod
    def flags_from_text(cls, v):
        if v in (None, ""):
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("needs_update", mode="before")
    @classmethod
    def flag_from_text(cls, v):
        if isinstance(v, str):
            return v.strip().upper() in ("YES", "Y", "TRUE", "1")
        return bool(v)

    @field_validator("sale_price", mode="before")
    @classmethod
    def sale_price_from_text(cls, v):
        if v in (None, ""):
            return None
        if isinstance(v, str):
            return int(float(v.replace(",", "").strip()))
        return v

    @field_validator("category_match_type", "sync_status", "category_confidence", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @property
    def key(self) -> str:
        """Stable record key: vendor item id, else item id."""
        return self.vendor_item_id or self.item_id

    def to_store_fields(self) -> dict:
        """Flatten for a record store row."""
        return self.model_dump(mode="json", exclude_none=False)


class SyncRunRequest(BaseSchema):
    """Batch of observations submitted over the API."""

    records: list[ProductRecord] = Field(default_factory=list)
    limit: Optional[int] = Field(None, ge=1, description="Stop after this many pending records")
    dry_run: bool = Field(False, description="Compute decisions only")
