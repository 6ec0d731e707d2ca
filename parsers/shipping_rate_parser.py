"""
Shipping rate table parser.

Reads the forwarder's weight-band rate table (csv or xlsx). Column names
vary between exports, so the start/end/fee columns are detected by
header keywords in English and Korean.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from io import BytesIO
from pathlib import Path
from typing import Optional, Union
import structlog

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from exceptions import ShippingRateParseError
from models.pricing import ShippingRateBand

logger = structlog.get_logger(__name__)


START_KEYWORDS = ("시작", "최소", "start", "min", "from")
END_KEYWORDS = ("종료", "끝", "최대", "end", "max", "to")
FEE_KEYWORDS = ("fee", "jpy", "price", "cost")


def _find_column(headers: list[str], keywords: tuple, exclude: set[int]) -> Optional[int]:
    """Index of the first header containing any keyword."""
    for idx, header in enumerate(headers):
        if idx in exclude:
            continue
        if any(keyword in header for keyword in keywords):
            return idx
    return None


def _to_decimal(raw) -> Optional[Decimal]:
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return None
    text = str(raw).strip().replace(",", "")
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _read_frame(file: Union[str, Path, BytesIO], file_format: Optional[str]) -> pd.DataFrame:
    if file_format is None:
        if isinstance(file, BytesIO):
            raise ShippingRateParseError("file_format is required for in-memory files")
        file_format = Path(file).suffix.lstrip(".").lower()

    try:
        if file_format == "csv":
            return pd.read_csv(file, dtype=str, keep_default_na=False)
        if file_format in ("xlsx", "xlsm", "xls"):
            return pd.read_excel(file, dtype=str, engine="openpyxl")
    except Exception as e:
        logger.error("shipping_rate_read_failed", error=str(e))
        raise ShippingRateParseError(
            message="Failed to read shipping rate file",
            details={"original_error": str(e)}
        )

    raise ShippingRateParseError(
        message=f"Unsupported shipping rate file format: {file_format}",
        details={"format": file_format}
    )


def parse_shipping_rates(
    file: Union[str, Path, BytesIO],
    file_format: Optional[str] = None,
) -> list[ShippingRateBand]:
    """
    Parse a shipping rate table into sorted weight bands.

    Args:
        file: Path or in-memory file
        file_format: "csv" or "xlsx"; inferred from the suffix for paths

    Returns:
        Bands sorted ascending by lower bound. Rows with unreadable
        numbers are skipped with a warning.

    Raises:
        ShippingRateParseError: File unreadable or columns not detected
    """
    df = _read_frame(file, file_format)

    if df.empty:
        logger.warning("shipping_rate_file_empty")
        return []

    headers = [str(h or "").strip().lower() for h in df.columns]

    start_idx = _find_column(headers, START_KEYWORDS, set())
    end_idx = _find_column(headers, END_KEYWORDS, {start_idx})
    fee_idx = _find_column(headers, FEE_KEYWORDS, {start_idx, end_idx})

    logger.debug(
        "shipping_rate_columns_detected",
        headers=headers,
        start=start_idx,
        end=end_idx,
        fee=fee_idx
    )

    if start_idx is None or end_idx is None or fee_idx is None:
        raise ShippingRateParseError(
            message="Could not detect start/end/fee columns",
            details={
                "headers": headers,
                "expected": "start/min, end/max, fee/jpy/price/cost"
            }
        )

    bands: list[ShippingRateBand] = []

    for row_num, row in enumerate(df.itertuples(index=False), start=2):
        lower = _to_decimal(row[start_idx])
        upper = _to_decimal(row[end_idx])
        fee = _to_decimal(row[fee_idx])

        if lower is None or upper is None or fee is None:
            logger.warning(
                "shipping_rate_row_skipped",
                row=row_num,
                start=row[start_idx],
                end=row[end_idx],
                fee=row[fee_idx]
            )
            continue

        try:
            band = ShippingRateBand(
                lower_kg=lower,
                upper_kg=upper,
                fee=int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
            )
        except PydanticValidationError as e:
            logger.warning("shipping_rate_row_invalid", row=row_num, error=str(e))
            continue

        bands.append(band)

    bands.sort(key=lambda b: b.lower_kg)

    logger.info("shipping_rates_parsed", count=len(bands))

    return bands
