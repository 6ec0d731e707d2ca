"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from config.pricing import (
    FX_RATE,
    DOMESTIC_SHIPPING_COST,
    COMMISSION_RATE,
    MIN_MARGIN_RATE,
    TARGET_MARGIN_RATE,
)
from models.pricing import PricingConstants


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL"
    )
    supabase_key: Optional[str] = Field(
        None,
        description="Supabase anon/public key"
    )

    # ===================
    # MARKETPLACE API
    # ===================
    marketplace_api_url: Optional[str] = Field(
        None,
        description="Base URL of the target marketplace API"
    )
    marketplace_api_key: Optional[str] = Field(
        None,
        description="Seller API key for the target marketplace"
    )
    marketplace_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Per-request timeout for marketplace calls"
    )

    # ===================
    # PRICING
    # ===================
    fx_rate: Decimal = Field(
        default=FX_RATE,
        gt=0,
        description="Source currency units per target currency unit"
    )
    domestic_shipping_cost: Decimal = Field(
        default=DOMESTIC_SHIPPING_COST,
        ge=0,
        description="Fixed domestic shipping added to cost (source currency)"
    )
    commission_rate: Decimal = Field(
        default=COMMISSION_RATE,
        ge=0,
        lt=1,
        description="Marketplace commission rate"
    )
    min_margin_rate: Decimal = Field(
        default=MIN_MARGIN_RATE,
        ge=0,
        lt=1,
        description="Minimum margin kept after commission"
    )
    target_margin_rate: Decimal = Field(
        default=TARGET_MARGIN_RATE,
        ge=0,
        description="Markup applied on base cost"
    )

    # ===================
    # CATEGORY RESOLUTION
    # ===================
    fallback_category_id: str = Field(
        default="320002604",
        min_length=1,
        description="Target category used when no manual mapping exists"
    )
    fallback_category_path: str = Field(
        default="Fallback Category (Review Required)",
        description="Display path of the fallback category"
    )
    auto_match_min_score: float = Field(
        default=0.25,
        ge=0,
        le=1,
        description="Minimum score for an AUTO suggestion"
    )
    auto_match_top_n: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Number of AUTO suggestions kept per path"
    )

    # ===================
    # SYNC BEHAVIOUR
    # ===================
    max_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Retries after a failed create/update call"
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        le=60,
        description="Fixed delay before retrying a remote call"
    )
    default_shipping_no: str = Field(
        default="471554",
        description="Seller shipping template number"
    )
    default_production_place_type: str = Field(
        default="2",
        description="Production place type code (2 = overseas)"
    )
    default_production_place: str = Field(
        default="Overseas",
        description="Production place label"
    )
    default_item_qty: int = Field(
        default=100,
        ge=1,
        description="Stock quantity sent on create"
    )
    image_cdn_base: str = Field(
        default="https://thumbnail.coupangcdn.com/",
        description="Prefix for relative thumbnail paths"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    @model_validator(mode="after")
    def check_price_denominator(self) -> "Settings":
        """Commission plus minimum margin must leave a positive share."""
        if self.commission_rate + self.min_margin_rate >= 1:
            raise ValueError("commission_rate + min_margin_rate must be below 1")
        return self

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase credentials are present."""
        return bool(self.supabase_url and self.supabase_key)

    @property
    def marketplace_configured(self) -> bool:
        """Check if the marketplace API is reachable in principle."""
        return bool(self.marketplace_api_url and self.marketplace_api_key)

    @property
    def pricing_constants(self) -> PricingConstants:
        return PricingConstants(
            fx_rate=self.fx_rate,
            domestic_shipping_cost=self.domestic_shipping_cost,
            commission_rate=self.commission_rate,
            min_margin_rate=self.min_margin_rate,
            target_margin_rate=self.target_margin_rate,
        )

    @property
    def business_defaults(self) -> dict[str, str]:
        """Fixed values used when no other source provides a payload field."""
        return {
            "category_id": self.fallback_category_id,
            "shipping_no": self.default_shipping_no,
            "production_place_type": self.default_production_place_type,
            "production_place": self.default_production_place,
            "quantity": str(self.default_item_qty),
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
