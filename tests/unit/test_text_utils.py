"""
Unit tests for text and number utilities.

Run: pytest tests/unit/test_text_utils.py -v
"""

import pytest
from decimal import Decimal

from utils.text_utils import (
    format_decimal,
    normalize_category_path,
    normalize_image_url,
    parse_breadcrumb_segments,
    parse_positive_decimal,
    tokenize_path,
)


class TestNormalizeCategoryPath:
    """Tests for normalize_category_path()"""

    def test_normalizes_spacing_around_delimiters(self):
        assert normalize_category_path("가전>냉장고> 양문형") == "가전 > 냉장고 > 양문형"

    def test_drops_empty_segments_and_collapses_whitespace(self):
        assert normalize_category_path(" A >  > B   C ") == "A > B C"

    @pytest.mark.parametrize("raw", ["", "   ", None, " > > "])
    def test_empty_input_gives_empty_key(self, raw):
        assert normalize_category_path(raw) == ""

    @pytest.mark.parametrize("raw", [
        "가전>냉장고> 양문형",
        "  Home  >Kitchen>  ",
        "a>b>c",
        "single",
    ])
    def test_is_idempotent(self, raw):
        once = normalize_category_path(raw)
        assert normalize_category_path(once) == once

    def test_decomposed_hangul_matches_composed(self):
        import unicodedata
        decomposed = unicodedata.normalize("NFD", "가전 > 냉장고")
        assert normalize_category_path(decomposed) == "가전 > 냉장고"


class TestTokenizePath:
    """Tests for tokenize_path()"""

    def test_splits_on_separators_and_lowercases(self):
        assert tokenize_path("Home Appliances > Kitchen/Fridge, Large") == [
            "home", "appliances", "kitchen", "fridge", "large"
        ]

    def test_dedupes_keeping_first_occurrence(self):
        assert tokenize_path("a > b > a") == ["a", "b"]

    def test_empty_path(self):
        assert tokenize_path("") == []
        assert tokenize_path(None) == []


class TestParsePositiveDecimal:
    """Tests for parse_positive_decimal()"""

    @pytest.mark.parametrize("raw,expected", [
        ("13,000", Decimal("13000")),
        (" 0.6 ", Decimal("0.6")),
        (5500, Decimal("5500")),
        (0.5, Decimal("0.5")),
        (Decimal("12.5"), Decimal("12.5")),
    ])
    def test_parses_valid_numbers(self, raw, expected):
        assert parse_positive_decimal(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, "", "   ", "0", "-5", "abc", "0.6kg", "NaN", "Infinity", True,
    ])
    def test_rejects_invalid_numbers(self, raw):
        assert parse_positive_decimal(raw) is None


class TestFormatDecimal:
    """Tests for format_decimal()"""

    def test_integral_value_has_no_decimals(self):
        assert format_decimal(Decimal("5000")) == "5000"
        assert format_decimal(Decimal("5000.00")) == "5000"

    def test_fraction_keeps_significant_digits(self):
        assert format_decimal(Decimal("0.60")) == "0.6"


class TestNormalizeImageUrl:
    """Tests for normalize_image_url()"""

    def test_relative_thumbnail_gets_cdn_prefix(self):
        url = normalize_image_url("thumbnails/remote/a.jpg", "https://cdn.example.com/")
        assert url == "https://cdn.example.com/thumbnails/remote/a.jpg"

    def test_absolute_url_unchanged(self):
        url = "https://img.example.com/a.jpg"
        assert normalize_image_url(url, "https://cdn.example.com/") == url

    def test_empty_url(self):
        assert normalize_image_url(None, "https://cdn.example.com/") == ""


class TestParseBreadcrumbSegments:
    """Tests for parse_breadcrumb_segments()"""

    def test_home_dropped_and_paths_derived(self):
        # Act
        crumb = parse_breadcrumb_segments("쿠팡 홈 > 가전디지털 > 주방가전 > 냉장고 > 양문형냉장고")

        # Assert
        assert crumb.full_path == "가전디지털 > 주방가전 > 냉장고 > 양문형냉장고"
        assert crumb.path3 == "주방가전 > 냉장고 > 양문형냉장고"
        assert crumb.path2 == "냉장고 > 양문형냉장고"
        assert crumb.root_name == "주방가전"
        assert crumb.parent_name == "냉장고"
        assert crumb.leaf_name == "양문형냉장고"

    def test_segment_list_accepted(self):
        crumb = parse_breadcrumb_segments(["Coupang Home", " Fashion ", "", "Shoes"])

        assert crumb.full_path == "Fashion > Shoes"
        assert crumb.path3 == "Fashion > Shoes"
        assert crumb.root_name == "Fashion"
        assert crumb.parent_name == "Fashion"
        assert crumb.leaf_name == "Shoes"

    def test_single_segment_has_no_parent(self):
        crumb = parse_breadcrumb_segments("가전")

        assert crumb.path2 == "가전"
        assert crumb.parent_name == ""
        assert crumb.leaf_name == "가전"

    @pytest.mark.parametrize("breadcrumb", [None, "", "쿠팡 홈", " > > ", [], 42])
    def test_nothing_left_returns_none(self, breadcrumb):
        assert parse_breadcrumb_segments(breadcrumb) is None
