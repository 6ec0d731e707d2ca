"""
Product feed parser.

Reads scraped product rows (csv, xlsx or json) exported from the
collection sheet and turns them into ProductRecord observations for a
batch run. Sheet column names are mapped onto record fields; snake_case
field names are accepted as-is.
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional, Union
import structlog

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from exceptions import ProductFeedParseError
from models.product import ProductRecord, is_blank
from utils.text_utils import Breadcrumb, parse_breadcrumb_segments

logger = structlog.get_logger(__name__)


# Sheet header → ProductRecord field
COLUMN_ALIASES = {
    "vendorItemId": "vendor_item_id",
    "itemId": "item_id",
    "coupang_product_id": "product_id",
    "categoryId": "source_category_id",
    "ProductURL": "product_url",
    "ItemTitle": "title",
    "CostPriceKrw": "cost_price",
    "WeightKg": "weight_kg",
    "StandardImage": "standard_image",
    "ExtraImages": "extra_images",
    "Options": "options",
    "ItemDescriptionText": "description",
    "categoryPath2": "category_path2",
    "categoryPath3": "category_path3",
    "jpCategoryIdUsed": "target_category_id",
    "categoryMatchType": "category_match_type",
    "categoryMatchConfidence": "category_confidence",
    "coupangCategoryKeyUsed": "category_key_used",
    "qoo10SellingPrice": "sale_price",
    "qoo10ItemId": "remote_id",
    "qoo10SellerCode": "seller_code",
    "prevItemPrice": "previous_price",
    "changeFlags": "change_flags",
    "needsUpdate": "needs_update",
    "registrationMessage": "sync_message",
}


# Breadcrumb trail columns, read when categoryPath2/3 are both empty
BREADCRUMB_COLUMNS = ("breadcrumb", "Breadcrumb", "categoryFullPath", "category_full_path", "fullPath")


@dataclass
class FeedRowError:
    """Single row that could not be turned into a record."""
    row: int
    error: str


@dataclass
class ProductFeedResult:
    """Result of parsing a product feed."""
    records: list[ProductRecord] = field(default_factory=list)
    errors: list[FeedRowError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


def _read_frame(file: Union[str, Path, BytesIO], file_format: Optional[str]) -> pd.DataFrame:
    if file_format is None:
        if isinstance(file, BytesIO):
            raise ProductFeedParseError("file_format is required for in-memory files")
        file_format = Path(file).suffix.lstrip(".").lower()

    try:
        if file_format == "csv":
            return pd.read_csv(file, dtype=str, keep_default_na=False)
        if file_format in ("xlsx", "xlsm", "xls"):
            return pd.read_excel(file, dtype=str, engine="openpyxl").fillna("")
        if file_format in ("json", "jsonl"):
            # precise_float keeps 0.3 as 0.3; the fast parser yields 0.30000000000000004
            return pd.read_json(
                file,
                dtype=False,
                precise_float=True,
                lines=file_format == "jsonl"
            )
    except ValueError as e:
        logger.error("product_feed_read_failed", error=str(e))
        raise ProductFeedParseError(
            message="Failed to read product feed",
            details={"original_error": str(e)}
        )

    raise ProductFeedParseError(
        message=f"Unsupported product feed format: {file_format}",
        details={"format": file_format}
    )


def _breadcrumb(row: dict) -> Optional[Breadcrumb]:
    for column in BREADCRUMB_COLUMNS:
        crumb = parse_breadcrumb_segments(row.get(column))
        if crumb is not None:
            return crumb
    return None


def _row_to_fields(row: dict) -> dict:
    fields = {}
    known = ProductRecord.model_fields

    for column, value in row.items():
        name = COLUMN_ALIASES.get(str(column).strip(), str(column).strip())
        if name not in known:
            continue
        if isinstance(value, float) and pd.isna(value):
            continue
        fields[name] = value

    # Older sheets only carry ItemPrice as the source cost
    if not fields.get("cost_price") and row.get("ItemPrice") not in (None, ""):
        fields["cost_price"] = row["ItemPrice"]

    # Older sheets only carry the breadcrumb trail
    if is_blank(fields.get("category_path2")) and is_blank(fields.get("category_path3")):
        crumb = _breadcrumb(row)
        if crumb is not None:
            fields["category_path2"] = crumb.path2
            fields["category_path3"] = crumb.path3

    return fields


def parse_product_feed(
    file: Union[str, Path, BytesIO],
    file_format: Optional[str] = None,
) -> ProductFeedResult:
    """
    Parse a product feed into observations.

    Args:
        file: Path or in-memory file
        file_format: "csv", "xlsx", "json" or "jsonl"; inferred from
                     the suffix for paths

    Returns:
        ProductFeedResult with records and per-row errors

    Raises:
        ProductFeedParseError: If the file cannot be read at all
    """
    logger.info("parsing_product_feed", file_type=type(file).__name__)

    df = _read_frame(file, file_format)
    result = ProductFeedResult()

    for row_num, row in enumerate(df.to_dict(orient="records"), start=2):
        try:
            record = ProductRecord(**_row_to_fields(row))
        except PydanticValidationError as e:
            result.errors.append(FeedRowError(row=row_num, error=str(e)))
            continue

        if not record.key:
            result.errors.append(FeedRowError(row=row_num, error="Missing vendorItemId and itemId"))
            continue

        result.records.append(record)

    logger.info(
        "product_feed_parsed",
        records=len(result.records),
        errors=len(result.errors)
    )

    return result
