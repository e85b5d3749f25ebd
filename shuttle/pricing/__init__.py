"""
Dynamic Pricing Module

Bulk-discount pricing for shared shuttle trips. Each destination carries a
tier table of (min_passengers, cost_per_person) breakpoints; the applicable
tier for a trip is the one with the greatest min_passengers not exceeding the
trip's total passenger count.

Key Components:
- service.py: PricingCalculator and the pure tier-selection helpers
- router.py: FastAPI endpoints for quotes, discount curves and tier updates
- schemas.py: Pydantic models for pricing data
"""

from .router import router
from .service import PricingCalculator, select_tier, price_from_tiers, to_credits
from .schemas import PricingInfo, PricingDisplay, PricingTierBase, PricingTierUpdate

__all__ = [
    "router",
    "PricingCalculator",
    "select_tier",
    "price_from_tiers",
    "to_credits",
    "PricingInfo",
    "PricingDisplay",
    "PricingTierBase",
    "PricingTierUpdate"
]
