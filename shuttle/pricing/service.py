from typing import List, Optional, Sequence
from decimal import Decimal
from sqlalchemy.orm import Session, selectinload

from shuttle.exceptions import LocationNotFound
from shuttle.logger import get_logger
from shuttle.models import Location, PricingTier
from shuttle.pricing.schemas import (
    PricingInfo, PricingTierBase, PricingDisplay, PricingTierDisplay
)

logger = get_logger(__name__)

CENTS = Decimal("0.01")


def to_credits(value) -> Decimal:
    """Normalise a numeric value to credit precision (two places)"""
    return Decimal(str(value)).quantize(CENTS)


def select_tier(tiers: Sequence, passenger_count: int):
    """Return the tier with the greatest min_passengers <= passenger_count.

    ``tiers`` may come in any order. When the count sits below every
    breakpoint the lowest tier applies. Returns None for an empty table.
    """
    if not tiers:
        return None

    ordered = sorted(tiers, key=lambda tier: tier.min_passengers)
    selected = ordered[0]
    for tier in ordered:
        if tier.min_passengers > passenger_count:
            break
        selected = tier
    return selected


def price_from_tiers(
    tiers: Sequence,
    passenger_count: int,
    destination_name: str
) -> Optional[PricingInfo]:
    """Pure pricing over an in-memory tier table"""
    if passenger_count < 1:
        raise ValueError("Passenger count must be at least 1")

    selected = select_tier(tiers, passenger_count)
    if selected is None:
        return None

    lowest = min(tiers, key=lambda tier: tier.min_passengers)
    cost_per_person = to_credits(selected.cost_per_person)

    savings = None
    if selected.min_passengers != lowest.min_passengers:
        savings = to_credits(lowest.cost_per_person) - cost_per_person

    return PricingInfo(
        cost_per_person=cost_per_person,
        total_cost=cost_per_person * passenger_count,
        passenger_count=passenger_count,
        destination_name=destination_name,
        tier_min_passengers=selected.min_passengers,
        savings=savings
    )


class PricingCalculator:
    """Bulk-discount pricing for shared shuttle trips"""

    def __init__(self, db: Session):
        self.db = db

    def _get_location(self, destination_id: int) -> Location:
        location = self.db.query(Location).options(
            selectinload(Location.pricing_tiers)
        ).filter(Location.id == destination_id).first()

        if not location:
            raise LocationNotFound(destination_id)
        return location

    def calculate_trip_cost(
        self,
        destination_id: int,
        total_passenger_count: int
    ) -> Optional[PricingInfo]:
        """Per-person cost for a destination at a total passenger count.

        Returns None when the destination has no tiers configured; callers
        then fall back to the flat default rate.
        """
        location = self._get_location(destination_id)
        pricing = price_from_tiers(location.pricing_tiers, total_passenger_count, location.name)

        if pricing is None:
            logger.debug("No pricing tiers for destination %s", destination_id)
        return pricing

    def get_destination_pricing_tiers(self, destination_id: int) -> List[PricingTier]:
        """All tiers of a destination, ascending by min_passengers"""
        return self.db.query(PricingTier).filter(
            PricingTier.location_id == destination_id
        ).order_by(PricingTier.min_passengers.asc()).all()

    def calculate_refund_amount(
        self,
        original_cost: Decimal,
        destination_id: int,
        new_passenger_count: int
    ) -> Decimal:
        """Difference between a per-person price paid and today's price; never negative"""
        pricing = self.calculate_trip_cost(destination_id, new_passenger_count)
        if not pricing:
            return Decimal("0.00")

        refund = to_credits(original_cost) - pricing.cost_per_person
        return max(Decimal("0.00"), refund)

    def has_dynamic_pricing(self, destination_id: int) -> bool:
        count = self.db.query(PricingTier).filter(
            PricingTier.location_id == destination_id
        ).count()
        return count > 0

    def get_pricing_display(self, destination_id: int) -> PricingDisplay:
        """Every tier with its group total and savings against the lowest tier"""
        location = self._get_location(destination_id)
        tiers = location.pricing_tiers

        lowest_cost = to_credits(tiers[0].cost_per_person) if tiers else None
        display_tiers = []
        for index, tier in enumerate(tiers):
            cost = to_credits(tier.cost_per_person)
            display_tiers.append(PricingTierDisplay(
                passengers=tier.min_passengers,
                cost_per_person=cost,
                total_cost=cost * tier.min_passengers,
                savings=(lowest_cost - cost) if index > 0 else None
            ))

        return PricingDisplay(
            destination_id=location.id,
            destination_name=location.name,
            duration=location.default_duration,
            base_cost=to_credits(location.base_cost) if location.base_cost is not None else None,
            has_dynamic_pricing=bool(tiers),
            tiers=display_tiers
        )

    def replace_pricing_tiers(
        self,
        destination_id: int,
        tiers: List[PricingTierBase]
    ) -> List[PricingTier]:
        """Swap a destination's tier table for a new one and commit"""
        location = self._get_location(destination_id)

        seen = set()
        for tier in tiers:
            if tier.min_passengers in seen:
                raise ValueError(f"Duplicate tier for {tier.min_passengers} passengers")
            seen.add(tier.min_passengers)

        location.pricing_tiers.clear()
        self.db.flush()

        for tier in sorted(tiers, key=lambda t: t.min_passengers):
            location.pricing_tiers.append(PricingTier(
                min_passengers=tier.min_passengers,
                cost_per_person=to_credits(tier.cost_per_person)
            ))

        self.db.commit()
        logger.info(
            "Replaced pricing tiers for destination %s (%d tiers)",
            destination_id, len(tiers)
        )
        return self.get_destination_pricing_tiers(destination_id)
