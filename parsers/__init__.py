"""
File parsers for shipping rate tables and scraped product feeds.
"""

from parsers.shipping_rate_parser import parse_shipping_rates
from parsers.product_feed_parser import (
    parse_product_feed,
    ProductFeedResult,
    FeedRowError,
)

__all__ = [
    "parse_shipping_rates",
    "parse_product_feed",
    "ProductFeedResult",
    "FeedRowError",
]
