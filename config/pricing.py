"""
Pricing constants for converting source cost into a marketplace sale price.

Defaults only. Settings can override each value from the environment.
"""

from decimal import Decimal

# =============================================================================
# EXCHANGE RATE
# =============================================================================

# Source currency units per one target currency unit (10 KRW = 1 JPY)
FX_RATE = Decimal("10")


# =============================================================================
# COST ADDITIONS
# =============================================================================

# Domestic shipping to the forwarder, added to cost before conversion
DOMESTIC_SHIPPING_COST = Decimal("3000")


# =============================================================================
# MARGIN RULES
# =============================================================================
# requiredPrice  = baseCost / (1 - COMMISSION_RATE - MIN_MARGIN_RATE)
# targetMarginPx = baseCost * (1 + TARGET_MARGIN_RATE)
# finalPrice     = round(max(requiredPrice, targetMarginPx))
#
# With the defaults the denominator is 0.65, so requiredPrice wins whenever
# 1 / 0.65 (~1.538) > 1.2, i.e. always. TARGET_MARGIN_RATE only matters when
# commission and minimum margin are configured lower.

# Marketplace commission (10%)
COMMISSION_RATE = Decimal("0.10")

# Minimum margin kept after commission (25%)
MIN_MARGIN_RATE = Decimal("0.25")

# Markup on base cost (20%)
TARGET_MARGIN_RATE = Decimal("0.20")
