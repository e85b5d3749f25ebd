from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List

from shuttle.database import get_db
from shuttle.exceptions import NotFoundError, TripNotFound
from shuttle.models import Trip
from shuttle.pricing.schemas import PricingInfo, PricingDisplay, PricingTier, PricingTierUpdate
from shuttle.pricing.service import PricingCalculator

router = APIRouter()

@router.get("/locations/{location_id}", response_model=PricingDisplay)
def get_location_pricing(
    location_id: int,
    db: Session = Depends(get_db)
):
    """Get the bulk-discount curve of a destination"""

    calculator = PricingCalculator(db)

    try:
        return calculator.get_pricing_display(location_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

@router.get("/locations/{location_id}/quote", response_model=PricingInfo)
def quote_location_price(
    location_id: int,
    passenger_count: int = Query(1, ge=1, description="Total passengers on the trip"),
    db: Session = Depends(get_db)
):
    """Quote the per-person price for a passenger count"""

    calculator = PricingCalculator(db)

    try:
        pricing = calculator.calculate_trip_cost(location_id, passenger_count)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    if not pricing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pricing tiers configured for this destination"
        )

    return pricing

@router.put("/locations/{location_id}/tiers", response_model=List[PricingTier])
def replace_location_tiers(
    location_id: int,
    update: PricingTierUpdate,
    db: Session = Depends(get_db)
):
    """Replace the pricing tiers of a destination"""

    calculator = PricingCalculator(db)

    try:
        return calculator.replace_pricing_tiers(location_id, update.tiers)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.get("/trips/{trip_id}", response_model=PricingInfo)
def get_trip_pricing(
    trip_id: int,
    passenger_count: int = Query(1, ge=1, description="Total passengers on the trip"),
    db: Session = Depends(get_db)
):
    """Price a trip at a given passenger count"""

    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(TripNotFound(trip_id))
        )

    calculator = PricingCalculator(db)
    pricing = calculator.calculate_trip_cost(trip.destination_id, passenger_count)

    if not pricing:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not calculate pricing"
        )

    return pricing
