from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal


class PricingTierBase(BaseModel):
    """A bulk-discount breakpoint for a destination"""
    min_passengers: int = Field(..., ge=1, description="Smallest passenger count this tier applies to")
    cost_per_person: Decimal = Field(..., ge=0, description="Credits charged per passenger")


class PricingTier(PricingTierBase):
    id: int
    location_id: int

    class Config:
        from_attributes = True


class PricingTierUpdate(BaseModel):
    """Replacement tier table for a destination"""
    tiers: List[PricingTierBase]


class PricingInfo(BaseModel):
    """Per-person price for a passenger count"""
    cost_per_person: Decimal
    total_cost: Decimal
    passenger_count: int
    destination_name: str
    tier_min_passengers: int
    savings: Optional[Decimal] = None  # vs. the lowest-count tier


class PricingTierDisplay(BaseModel):
    passengers: int
    cost_per_person: Decimal
    total_cost: Decimal
    savings: Optional[Decimal] = None


class PricingDisplay(BaseModel):
    """Full discount curve of a destination for the booking screen"""
    destination_id: int
    destination_name: str
    duration: Optional[int] = None
    base_cost: Optional[Decimal] = None
    has_dynamic_pricing: bool
    tiers: List[PricingTierDisplay]
