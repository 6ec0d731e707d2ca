"""
Price engine: source-currency cost + weight → target-currency sale price.

Formula:
    base_cost      = (cost + domestic_shipping) / fx_rate + shipping_fee(weight)
    required_price = base_cost / (1 - commission_rate - min_margin_rate)
    target_price   = base_cost * (1 + target_margin_rate)
    final_price    = round_half_up(max(required_price, target_price))

Only the final price is rounded.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional
import structlog

from config import settings
from exceptions import (
    InvalidCostPriceError,
    InvalidWeightError,
    ShippingBandNotFoundError,
)
from models.pricing import PriceQuote, PricingConstants, ShippingRateBand
from services.reference_cache_service import ReferenceDataCache
from utils.text_utils import parse_positive_decimal

logger = structlog.get_logger(__name__)


def find_band(bands: list[ShippingRateBand], weight_kg: Decimal) -> Optional[ShippingRateBand]:
    """First band (ascending lower bound) whose closed interval holds the weight."""
    for band in bands:
        if band.contains(weight_kg):
            return band
    return None


class PriceService:
    """
    Computes sale prices from the run's shipping bands and pricing constants.
    """

    def __init__(
        self,
        cache: ReferenceDataCache,
        constants: Optional[PricingConstants] = None
    ):
        self.cache = cache
        self.constants = constants or settings.pricing_constants

    def quote(self, cost_price_raw: Any, weight_kg_raw: Any) -> PriceQuote:
        """
        Compute a sale price with its full breakdown.

        Args:
            cost_price_raw: Cost in source currency, may be text with separators
            weight_kg_raw: Weight in kg, may be text

        Returns:
            PriceQuote

        Raises:
            InvalidCostPriceError: Cost empty, non-numeric or not positive
            InvalidWeightError: Weight empty, non-numeric or not positive
            ShippingBandNotFoundError: No band contains the weight
            ReferenceDataUnavailableError: Shipping bands could not be loaded
        """
        cost = parse_positive_decimal(cost_price_raw)
        if cost is None:
            raise InvalidCostPriceError(cost_price_raw)

        weight = parse_positive_decimal(weight_kg_raw)
        if weight is None:
            raise InvalidWeightError(weight_kg_raw)

        band = find_band(self.cache.shipping_bands(), weight)
        if band is None:
            logger.warning("shipping_band_not_found", weight_kg=str(weight))
            raise ShippingBandNotFoundError(weight)

        c = self.constants
        base_cost = (cost + c.domestic_shipping_cost) / c.fx_rate + band.fee
        required_price = base_cost / (1 - c.commission_rate - c.min_margin_rate)
        target_margin_price = base_cost * (1 + c.target_margin_rate)

        final_price = int(
            max(required_price, target_margin_price).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )

        # A zero fee band with a tiny cost can round down to nothing
        if final_price <= 0:
            raise InvalidCostPriceError(cost_price_raw)

        quote = PriceQuote(
            cost_price=cost,
            weight_kg=weight,
            matched_band=band.label,
            shipping_fee=band.fee,
            base_cost=base_cost,
            required_price=required_price,
            target_margin_price=target_margin_price,
            final_price=final_price,
        )

        logger.debug(
            "price_computed",
            cost_price=str(cost),
            weight_kg=str(weight),
            band=band.label,
            final_price=final_price
        )

        return quote

    def compute_price(self, cost_price_raw: Any, weight_kg_raw: Any) -> int:
        """Final sale price only. Raises like quote()."""
        return self.quote(cost_price_raw, weight_kg_raw).final_price
