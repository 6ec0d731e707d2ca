"""
Text utilities for scraped catalog data.

Category paths arrive from breadcrumbs with uneven spacing, numbers
arrive as strings with thousands separators. Everything is normalized
here before it reaches the sync services.
"""

import re
import unicodedata
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

PATH_DELIMITER = ">"
PATH_SEPARATOR = " > "

_TOKEN_SPLIT = re.compile(r"[\s>/,]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_category_path(path: Optional[str]) -> str:
    """
    Normalize a category path into its canonical dictionary key.

    - "가전>냉장고> 양문형" → "가전 > 냉장고 > 양문형"
    - " A >  > B  C " → "A > B C"
    - "" or None → ""

    Hangul is NFC-composed so keys typed on different systems compare equal.

    Args:
        path: Raw breadcrumb path

    Returns:
        Canonical key, empty string when nothing is left
    """
    if not path or not isinstance(path, str):
        return ""

    path = unicodedata.normalize("NFC", path)

    segments = [segment.strip() for segment in path.split(PATH_DELIMITER)]
    joined = PATH_SEPARATOR.join(segment for segment in segments if segment)

    return _WHITESPACE.sub(" ", joined).strip()


def tokenize_path(path: Optional[str]) -> list[str]:
    """
    Split a category path into lowercase keyword tokens.

    Splits on whitespace, ">", "/" and ",". Order is kept, duplicates dropped.
    """
    if not path:
        return []

    path = unicodedata.normalize("NFC", path)
    tokens = (token.strip().lower() for token in _TOKEN_SPLIT.split(path))
    return list(dict.fromkeys(token for token in tokens if token))


def parse_positive_decimal(raw: Any) -> Optional[Decimal]:
    """
    Parse a scraped number into a Decimal.

    Strips whitespace and thousands separators ("13,000" → 13000).

    Returns:
        Decimal, or None for empty, non-numeric, non-finite, zero or
        negative input
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        sanitized = _WHITESPACE.sub("", str(raw)).replace(",", "")
        if not sanitized:
            return None
        try:
            value = Decimal(sanitized)
        except InvalidOperation:
            return None

    if not value.is_finite() or value <= 0:
        return None

    return value


def format_decimal(value: Decimal) -> str:
    """Canonical text form: no exponent, no trailing zeros ("5000", "0.6")."""
    return format(value.normalize(), "f")


def normalize_image_url(url: Optional[str], cdn_base: str) -> str:
    """
    Expand relative thumbnail paths to absolute CDN URLs.

    Absolute URLs are returned unchanged.
    """
    if not url or not isinstance(url, str):
        return ""

    url = url.strip()
    if url.startswith("thumbnails/"):
        return cdn_base.rstrip("/") + "/" + url

    return url


# Leading breadcrumb entries that are not categories
HOME_SEGMENTS = ("쿠팡 홈", "Coupang Home")


@dataclass(frozen=True)
class Breadcrumb:
    """Category paths derived from one breadcrumb trail."""
    full_path: str
    path2: str
    path3: str
    root_name: str
    parent_name: str
    leaf_name: str


def parse_breadcrumb_segments(breadcrumb: Union[str, list, None]) -> Optional[Breadcrumb]:
    """
    Derive category paths from a breadcrumb trail.

    Accepts "쿠팡 홈 > 가전 > 냉장고 > 양문형" or the same trail as a list of
    segments. Home entries and blank segments are dropped; path3 is the
    last three segments, path2 the last two, and the names come from path3.

    Returns:
        Breadcrumb, or None when no category segment is left
    """
    if isinstance(breadcrumb, str):
        raw_segments = breadcrumb.split(PATH_DELIMITER)
    elif isinstance(breadcrumb, (list, tuple)):
        raw_segments = [str(segment) for segment in breadcrumb if segment is not None]
    else:
        return None

    segments = []
    for segment in raw_segments:
        segment = _WHITESPACE.sub(" ", unicodedata.normalize("NFC", segment)).strip()
        if segment and segment not in HOME_SEGMENTS:
            segments.append(segment)

    if not segments:
        return None

    last3 = segments[-3:]
    return Breadcrumb(
        full_path=PATH_SEPARATOR.join(segments),
        path2=PATH_SEPARATOR.join(segments[-2:]),
        path3=PATH_SEPARATOR.join(last3),
        root_name=last3[0],
        parent_name=last3[-2] if len(last3) >= 2 else "",
        leaf_name=last3[-1],
    )
