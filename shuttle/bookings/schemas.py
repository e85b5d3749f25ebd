from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from shuttle.pricing.schemas import PricingInfo


class BookingStatus(str, Enum):
    """Booking status enumeration"""
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Booking Request Models
class BookingCreateRequest(BaseModel):
    """Request to book seats on a shared trip"""
    trip_id: int
    user_id: int
    rider_id: Optional[int] = None
    guest_name: Optional[str] = Field(None, max_length=255)
    passenger_count: int = Field(1, ge=1, le=10, description="Seats taken by this booking")


class BookingCancellationRequest(BaseModel):
    """Request to cancel a booking"""
    cancellation_reason: Optional[str] = None


# Booking Response Models
class BookingResponse(BaseModel):
    """Booking as stored"""
    id: int
    trip_id: int
    user_id: int
    rider_id: Optional[int] = None
    guest_name: Optional[str] = None
    passenger_count: int
    credits_cost: Decimal
    original_cost: Decimal
    status: BookingStatus
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Refund Models
class RefundDetail(BaseModel):
    """One retroactive refund issued during a sweep"""
    booking_id: int
    user_id: int
    user_name: str
    original_cost: Decimal
    new_cost: Decimal
    refund_amount: Decimal


class RefundResult(BaseModel):
    """Outcome of a refund sweep, handed to the notification sender"""
    success: bool = False
    refunds_processed: int = 0
    total_refunded: Decimal = Decimal("0.00")
    refund_details: List[RefundDetail] = []
    errors: List[str] = []


class RefundHistoryEntry(BaseModel):
    transaction_id: int
    booking_id: Optional[int] = None
    user_id: int
    user_name: str
    refund_amount: Decimal
    refund_date: Optional[datetime] = None
    description: str


class BookingResult(BaseModel):
    """Booking confirmation with pricing and refund summary"""
    booking: BookingResponse
    cost_per_person: Decimal
    pricing: Optional[PricingInfo] = None
    refunds: Optional[RefundResult] = None
    warnings: List[str] = []


class CancellationResult(BaseModel):
    booking: BookingResponse
    refunded_credits: Decimal
    message: str = "Booking cancelled and credits refunded successfully"
