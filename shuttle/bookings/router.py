from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from shuttle.database import get_db
from shuttle.exceptions import NotFoundError
from shuttle.bookings.schemas import (
    BookingCreateRequest, BookingCancellationRequest, BookingResponse, BookingResult,
    BookingStatus, CancellationResult, RefundHistoryEntry
)
from shuttle.bookings.booking_service import BookingService
from shuttle.bookings.refund_service import RetroactiveRefundEngine
from shuttle.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

@router.post("/", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    db: Session = Depends(get_db)
):
    """Book seats on a trip at the current tier price"""

    booking_service = BookingService(db)

    try:
        return booking_service.create_booking(request)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.exception("Failed to create booking on trip %s", request.trip_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create booking: {str(e)}"
        )

@router.get("/user/{user_id}", response_model=List[BookingResponse])
def get_user_bookings(
    user_id: int,
    booking_status: Optional[BookingStatus] = Query(None, description="Filter by booking status"),
    limit: int = Query(50, ge=1, le=100, description="Maximum results"),
    db: Session = Depends(get_db)
):
    """Get all bookings for a user"""

    booking_service = BookingService(db)
    bookings = booking_service.get_user_bookings(user_id, booking_status)
    return bookings[:limit]

@router.get("/trip/{trip_id}", response_model=List[BookingResponse])
def get_trip_bookings(
    trip_id: int,
    include_cancelled: bool = Query(False, description="Include cancelled bookings"),
    db: Session = Depends(get_db)
):
    """Get the bookings of a trip"""

    booking_service = BookingService(db)
    return booking_service.get_trip_bookings(trip_id, include_cancelled)

@router.get("/trip/{trip_id}/refunds", response_model=List[RefundHistoryEntry])
def get_trip_refund_history(
    trip_id: int,
    db: Session = Depends(get_db)
):
    """Get the refunds issued for a trip"""

    refund_engine = RetroactiveRefundEngine(db)
    return refund_engine.get_trip_refund_history(trip_id)

@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db)
):
    """Get booking details by ID"""

    booking_service = BookingService(db)
    booking = booking_service.get_booking(booking_id)

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found"
        )

    return booking

@router.post("/{booking_id}/cancel", response_model=CancellationResult)
def cancel_booking(
    booking_id: int,
    cancellation: Optional[BookingCancellationRequest] = None,
    db: Session = Depends(get_db)
):
    """Cancel a booking and refund its credits"""

    booking_service = BookingService(db)
    reason = cancellation.cancellation_reason if cancellation else None

    try:
        return booking_service.cancel_booking(booking_id, reason)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.exception("Failed to cancel booking %s", booking_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to cancel booking: {str(e)}"
        )
