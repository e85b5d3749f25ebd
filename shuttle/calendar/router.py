from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from shuttle.calendar.providers import LocalCalendarBlocker
from shuttle.calendar.schemas import AvailabilityCheck, CalendarBlock, CalendarBlockCreate, CalendarEventMapping
from shuttle.calendar.service import CalendarSyncService
from shuttle.database import get_db
from shuttle.exceptions import NotFoundError, CalendarUnavailable

router = APIRouter()

@router.get("/availability", response_model=AvailabilityCheck)
def check_availability(
    start_time: datetime = Query(..., description="Slot start"),
    end_time: datetime = Query(..., description="Slot end"),
    exclude_trip_id: Optional[int] = Query(None, description="Ignore this trip's own block"),
    db: Session = Depends(get_db)
):
    """Check whether a time slot is free on the calendar"""

    if end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_time must be after start_time"
        )

    return CalendarSyncService(db).check_availability(start_time, end_time, exclude_trip_id)

@router.get("/blocks", response_model=List[CalendarBlock])
def list_blocks(db: Session = Depends(get_db)):
    """List blocked time slots"""
    return LocalCalendarBlocker(db).list_blocks()

@router.post("/blocks", response_model=CalendarBlock, status_code=status.HTTP_201_CREATED)
def create_block(
    block: CalendarBlockCreate,
    db: Session = Depends(get_db)
):
    """Block a time slot"""

    try:
        created = LocalCalendarBlocker(db).block_time_slot(
            block.start_time, block.end_time, block.reason, block.trip_id
        )
        db.commit()
        db.refresh(created)
        return created
    except ValueError as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/trips/{trip_id}/sync", response_model=CalendarEventMapping)
def sync_trip(
    trip_id: int,
    db: Session = Depends(get_db)
):
    """Put a trip on the calendar"""

    try:
        return CalendarSyncService(db).sync_trip(trip_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except CalendarUnavailable as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to sync trip: {str(e)}"
        )

@router.delete("/trips/{trip_id}")
def release_trip(
    trip_id: int,
    db: Session = Depends(get_db)
):
    """Remove a trip from the calendar"""

    released = CalendarSyncService(db).release_trip(trip_id)
    if not released:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip has no calendar event"
        )

    return {"message": "Calendar event removed", "trip_id": trip_id}
