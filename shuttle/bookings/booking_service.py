from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from shuttle.bookings.locks import TripLockRegistry, trip_locks
from shuttle.bookings.refund_service import RetroactiveRefundEngine
from shuttle.bookings.schemas import (
    BookingCreateRequest, BookingStatus, BookingResponse, BookingResult,
    CancellationResult, RefundResult
)
from shuttle.calendar.service import CalendarSyncService
from shuttle.config import Settings, settings as default_settings
from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import TransactionType
from shuttle.exceptions import (
    AccountSuspended, BookingAlreadyCancelled, BookingError, BookingNotFound,
    DuplicateBooking, InvalidRider, TripFull, TripNotFound, UserNotFound
)
from shuttle.logger import get_logger
from shuttle.models import Booking, Rider, Trip, User
from shuttle.notifications.service import NotificationService
from shuttle.pricing.service import PricingCalculator, to_credits

logger = get_logger(__name__)

REFUND_WARNING = "Some refunds could not be processed automatically."


class BookingService:
    """Service for booking seats on shared shuttle trips.

    Booking creation and cancellation for a trip run under that trip's lock:
    the in-process mutex from ``TripLockRegistry`` plus a row lock on the Trip.
    Inside it the passenger count is recomputed, the booking priced, the
    ledger debited and earlier passengers refunded, all in one transaction.
    Notifications and calendar sync happen after commit and are best effort.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        calculator: Optional[PricingCalculator] = None,
        ledger: Optional[CreditLedger] = None,
        refund_engine: Optional[RetroactiveRefundEngine] = None,
        calendar: Optional[CalendarSyncService] = None,
        notifier: Optional[NotificationService] = None,
        locks: Optional[TripLockRegistry] = None
    ):
        self.db = db
        self.settings = settings or default_settings
        self.calculator = calculator or PricingCalculator(db)
        self.ledger = ledger or CreditLedger(db)
        self.refund_engine = refund_engine or RetroactiveRefundEngine(
            db, calculator=self.calculator, ledger=self.ledger, settings=self.settings
        )
        self.calendar = calendar or CalendarSyncService(db, settings=self.settings)
        self.notifier = notifier or NotificationService(db, settings=self.settings)
        self.locks = locks or trip_locks

    def create_booking(self, request: BookingCreateRequest) -> BookingResult:
        """Book seats, charge the current tier price and refund earlier riders"""

        if request.rider_id is not None and request.guest_name:
            raise InvalidRider("Book either a rider or a guest, not both")

        trip = self.db.query(Trip).filter(Trip.id == request.trip_id).first()
        if not trip:
            raise TripNotFound(request.trip_id)

        warnings = []
        availability = self.calendar.check_availability(trip.start_time, trip.end_time, exclude_trip_id=trip.id)
        if not availability.available:
            warnings.append(
                f"Warning: {availability.reason}. Booking created but may conflict with existing schedule."
            )

        with self.locks.hold(request.trip_id, timeout=self.settings.TRIP_LOCK_TIMEOUT_SECONDS):
            try:
                booking, pricing, cost_per_person, refunds = self._create_locked(request)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Booking %s created on trip %s at %s per person",
            booking.id, request.trip_id, cost_per_person,
            extra={"trip_id": request.trip_id, "booking_id": booking.id, "user_id": request.user_id}
        )

        if refunds is not None and refunds.errors:
            logger.error(
                "Refund sweep for trip %s had errors: %s", request.trip_id, refunds.errors,
                extra={"trip_id": request.trip_id}
            )
            warnings.append(REFUND_WARNING)

        self._notify_refunds(refunds)
        self._sync_calendar(request.trip_id)

        self.db.refresh(booking)
        return BookingResult(
            booking=BookingResponse.model_validate(booking),
            cost_per_person=cost_per_person,
            pricing=pricing,
            refunds=refunds,
            warnings=warnings
        )

    def _create_locked(self, request: BookingCreateRequest):
        trip = self.db.query(Trip).options(
            joinedload(Trip.destination)
        ).filter(Trip.id == request.trip_id).with_for_update(of=Trip).populate_existing().first()
        if not trip:
            raise TripNotFound(request.trip_id)

        user = self.db.query(User).filter(User.id == request.user_id).first()
        if not user:
            raise UserNotFound(request.user_id)
        if user.status == "SUSPENDED":
            raise AccountSuspended()

        if request.rider_id is not None:
            rider = self.db.query(Rider).filter(Rider.id == request.rider_id).first()
            if not rider or rider.user_id != user.id:
                raise InvalidRider("Rider does not belong to this user")

        self._ensure_not_duplicate(request)

        current_passengers = self._confirmed_passenger_total(trip.id)
        new_total = current_passengers + request.passenger_count
        if new_total > trip.max_passengers:
            raise TripFull(request.passenger_count, trip.max_passengers - current_passengers)

        pricing = self.calculator.calculate_trip_cost(trip.destination_id, new_total)
        if pricing:
            cost_per_person = pricing.cost_per_person
        else:
            cost_per_person = to_credits(self.settings.DEFAULT_CREDITS_PER_PERSON)
        total_cost = cost_per_person * request.passenger_count

        # Nothing is written before the balance check
        self.ledger.require_funds(user.id, total_cost, exempt=user.is_admin)

        # The booker and every possible refund target, in one ordered pass
        self.ledger.lock_balances(
            [row[0] for row in self.db.query(Booking.user_id).filter(
                Booking.trip_id == trip.id,
                Booking.status == BookingStatus.CONFIRMED.value
            ).distinct().all()] + [user.id]
        )

        booking = Booking(
            trip_id=trip.id,
            user_id=user.id,
            rider_id=request.rider_id,
            guest_name=request.guest_name,
            passenger_count=request.passenger_count,
            credits_cost=total_cost,
            original_cost=total_cost,
            status=BookingStatus.CONFIRMED.value
        )
        self.db.add(booking)
        self.db.flush()

        if total_cost > 0:
            self.ledger.debit(
                user.id,
                total_cost,
                f"Booking for {trip.destination.name}",
                exempt=user.is_admin,
                booking_id=booking.id,
                trip_id=trip.id
            )

        trip.current_passengers = new_total
        self.db.flush()

        refunds = None
        if current_passengers > 0 and pricing is not None:
            refunds = self.refund_engine.process_retroactive_refunds(trip.id, booking.id)

        return booking, pricing, cost_per_person, refunds

    def cancel_booking(self, booking_id: int, reason: Optional[str] = None) -> CancellationResult:
        """Cancel a booking and return its current cost to the owner.

        Riders left on the trip keep their price; a cancellation never
        re-charges anyone.
        """
        booking = self.get_booking(booking_id)
        if not booking:
            raise BookingNotFound(booking_id)
        trip_id = booking.trip_id

        with self.locks.hold(trip_id, timeout=self.settings.TRIP_LOCK_TIMEOUT_SECONDS):
            try:
                trip = self.db.query(Trip).filter(
                    Trip.id == trip_id
                ).with_for_update().populate_existing().first()
                booking = self.db.query(Booking).filter(
                    Booking.id == booking_id
                ).populate_existing().first()

                if booking.status == BookingStatus.CANCELLED.value:
                    raise BookingAlreadyCancelled(booking_id)
                if booking.status == BookingStatus.COMPLETED.value:
                    raise BookingError("Completed bookings cannot be cancelled")

                refund = to_credits(booking.credits_cost)
                booking.status = BookingStatus.CANCELLED.value
                booking.cancellation_reason = reason
                booking.cancelled_at = datetime.now(timezone.utc)
                self.db.flush()

                if refund > 0:
                    self.ledger.credit(
                        booking.user_id,
                        refund,
                        f"Cancellation refund for booking {booking_id}",
                        transaction_type=TransactionType.REFUND,
                        booking_id=booking_id,
                        trip_id=trip_id
                    )

                trip.current_passengers = self._confirmed_passenger_total(trip_id)
                remaining = trip.current_passengers
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Booking %s cancelled, %s credits refunded", booking_id, refund,
            extra={"trip_id": trip_id, "booking_id": booking_id}
        )

        if remaining == 0:
            self._release_calendar(trip_id)

        self.db.refresh(booking)
        return CancellationResult(
            booking=BookingResponse.model_validate(booking),
            refunded_credits=refund
        )

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Get booking by ID"""
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    def get_user_bookings(
        self,
        user_id: int,
        booking_status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        """Get all bookings for a user, newest first"""
        query = self.db.query(Booking).filter(Booking.user_id == user_id)
        if booking_status:
            query = query.filter(Booking.status == booking_status.value)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def get_trip_bookings(self, trip_id: int, include_cancelled: bool = False) -> List[Booking]:
        """Get the bookings of a trip in booking order"""
        query = self.db.query(Booking).filter(Booking.trip_id == trip_id)
        if not include_cancelled:
            query = query.filter(Booking.status == BookingStatus.CONFIRMED.value)
        return query.order_by(Booking.created_at.asc(), Booking.id.asc()).all()

    def _confirmed_passenger_total(self, trip_id: int) -> int:
        total = self.db.query(
            func.coalesce(func.sum(Booking.passenger_count), 0)
        ).filter(
            Booking.trip_id == trip_id,
            Booking.status == BookingStatus.CONFIRMED.value
        ).scalar()
        return int(total or 0)

    def _ensure_not_duplicate(self, request: BookingCreateRequest) -> None:
        query = self.db.query(Booking).filter(
            Booking.trip_id == request.trip_id,
            Booking.user_id == request.user_id,
            Booking.status == BookingStatus.CONFIRMED.value
        )
        if request.rider_id is None:
            query = query.filter(Booking.rider_id.is_(None))
        else:
            query = query.filter(Booking.rider_id == request.rider_id)
        if request.guest_name:
            query = query.filter(Booking.guest_name == request.guest_name)
        else:
            query = query.filter(Booking.guest_name.is_(None))

        if query.first():
            if request.rider_id is not None:
                raise DuplicateBooking("This rider is already booked for this trip")
            if request.guest_name:
                raise DuplicateBooking(f"{request.guest_name} is already booked for this trip")
            raise DuplicateBooking("You are already booked for this trip")

    def _notify_refunds(self, refunds: Optional[RefundResult]) -> None:
        if not self.settings.REFUND_NOTIFICATIONS_ENABLED:
            return
        if refunds is None or not refunds.refund_details:
            return

        try:
            self.notifier.send_refund_notifications(refunds.refund_details)
        except Exception:
            self.db.rollback()
            logger.exception("Failed to send refund notifications")

    def _sync_calendar(self, trip_id: int) -> None:
        if not self.settings.CALENDAR_SYNC_ENABLED:
            return

        try:
            self.calendar.sync_trip(trip_id)
        except Exception:
            self.db.rollback()
            logger.exception("Calendar sync failed for trip %s", trip_id, extra={"trip_id": trip_id})

    def _release_calendar(self, trip_id: int) -> None:
        if not self.settings.CALENDAR_SYNC_ENABLED:
            return

        try:
            self.calendar.release_trip(trip_id)
        except Exception:
            self.db.rollback()
            logger.exception("Calendar release failed for trip %s", trip_id, extra={"trip_id": trip_id})
