"""
Pricing schemas: constants, shipping bands and computed quotes.
"""

from decimal import Decimal

from pydantic import Field, model_validator

from models.base import BaseSchema


class PricingConstants(BaseSchema):
    """Configuration inputs of the sale price formula."""

    fx_rate: Decimal = Field(..., gt=0)
    domestic_shipping_cost: Decimal = Field(..., ge=0)
    commission_rate: Decimal = Field(..., ge=0, lt=1)
    min_margin_rate: Decimal = Field(..., ge=0, lt=1)
    target_margin_rate: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def check_denominator(self) -> "PricingConstants":
        if self.commission_rate + self.min_margin_rate >= 1:
            raise ValueError("commission_rate + min_margin_rate must be below 1")
        return self


class ShippingRateBand(BaseSchema):
    """
    Closed weight interval mapped to a shipping fee.

    Fee is in the target currency's smallest unit.
    """

    lower_kg: Decimal = Field(..., ge=0, description="Inclusive lower bound")
    upper_kg: Decimal = Field(..., ge=0, description="Inclusive upper bound")
    fee: int = Field(..., ge=0, description="Shipping fee in target currency")

    @model_validator(mode="after")
    def check_bounds(self) -> "ShippingRateBand":
        if self.upper_kg < self.lower_kg:
            raise ValueError("upper_kg must not be below lower_kg")
        return self

    def contains(self, weight_kg: Decimal) -> bool:
        return self.lower_kg <= weight_kg <= self.upper_kg

    @property
    def label(self) -> str:
        return f"{self.lower_kg}-{self.upper_kg}"


class PriceQuote(BaseSchema):
    """
    Full breakdown of one price computation.

    Intermediate values are unrounded; only final_price is rounded.
    """

    cost_price: Decimal
    weight_kg: Decimal
    matched_band: str
    shipping_fee: int
    base_cost: Decimal
    required_price: Decimal
    target_margin_price: Decimal
    final_price: int = Field(..., gt=0)
