"""
Booking & Refund Module

Seat booking on shared shuttle trips with dynamic pricing. Every new booking
is charged the tier price for the trip's new passenger count, and riders who
booked earlier at a higher price get the difference back as credits.

Key Components:
- booking_service.py: BookingService, owner of the per-trip booking transaction
- refund_service.py: RetroactiveRefundEngine, the refund sweep and refund history
- locks.py: TripLockRegistry, the in-process mutex keyed by trip id
- router.py: FastAPI endpoints for booking, cancellation and refund history
- schemas.py: Pydantic models for bookings and refund summaries

Guarantees:
- A booking's credits_cost only ever goes down through a refund sweep
- Sweeps are idempotent per price point
- Booking, debit, passenger count and refunds commit together or not at all
"""

from .router import router
from .booking_service import BookingService
from .refund_service import RetroactiveRefundEngine
from .locks import TripLockRegistry, trip_locks
from .schemas import (
    BookingCreateRequest, BookingCancellationRequest, BookingResponse, BookingResult,
    BookingStatus, CancellationResult, RefundDetail, RefundResult, RefundHistoryEntry
)

__all__ = [
    "router",
    "BookingService",
    "RetroactiveRefundEngine",
    "TripLockRegistry",
    "trip_locks",
    "BookingCreateRequest",
    "BookingCancellationRequest",
    "BookingResponse",
    "BookingResult",
    "BookingStatus",
    "CancellationResult",
    "RefundDetail",
    "RefundResult",
    "RefundHistoryEntry"
]
