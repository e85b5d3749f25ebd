from typing import List, Optional
from sqlalchemy.orm import Session, joinedload

from shuttle.bookings.schemas import BookingStatus, RefundDetail, RefundResult, RefundHistoryEntry
from shuttle.config import Settings, settings as default_settings
from shuttle.credits.ledger import CreditLedger
from shuttle.credits.schemas import TransactionType
from shuttle.logger import get_logger
from shuttle.models import Booking, CreditTransaction, Trip
from shuttle.pricing.service import PricingCalculator, to_credits

logger = get_logger(__name__)


class RetroactiveRefundEngine:
    """Hands bulk-discount savings back to passengers who booked early.

    Runs inside the booking transaction and under the trip lock held by the
    caller; it flushes but never commits.
    """

    def __init__(
        self,
        db: Session,
        calculator: Optional[PricingCalculator] = None,
        ledger: Optional[CreditLedger] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db
        self.calculator = calculator or PricingCalculator(db)
        self.ledger = ledger or CreditLedger(db)
        self.settings = settings or default_settings

    def process_retroactive_refunds(self, trip_id: int, new_booking_id: int) -> RefundResult:
        """Refund earlier bookings of a trip down to the current tier price"""
        result = RefundResult()

        trip = self.db.query(Trip).options(
            joinedload(Trip.destination)
        ).filter(Trip.id == trip_id).first()

        if not trip:
            result.errors.append("Trip not found")
            return result

        bookings = self.db.query(Booking).options(
            joinedload(Booking.user)
        ).filter(
            Booking.trip_id == trip_id,
            Booking.status == BookingStatus.CONFIRMED.value
        ).order_by(Booking.created_at.asc(), Booking.id.asc()).all()

        passenger_total = sum(booking.passenger_count for booking in bookings)
        if passenger_total == 0:
            result.success = True
            return result

        pricing = self.calculator.calculate_trip_cost(trip.destination_id, passenger_total)
        if pricing is None:
            # Flat-rate destination, nothing ever gets cheaper
            result.success = True
            return result

        logger.info(
            "Refund sweep for trip %s: %d bookings, %d passengers, %s per person",
            trip_id, len(bookings), passenger_total, pricing.cost_per_person,
            extra={"trip_id": trip_id, "booking_id": new_booking_id}
        )

        candidates = [
            booking for booking in bookings
            if booking.id != new_booking_id
            and to_credits(booking.credits_cost) > pricing.cost_per_person * booking.passenger_count
        ]
        # Balance rows are locked up front in user id order, not booking order
        self.ledger.lock_balances(booking.user_id for booking in candidates)

        symbol = self.settings.CURRENCY_SYMBOL
        for booking in candidates:
            current_cost = to_credits(booking.credits_cost)
            new_cost = pricing.cost_per_person * booking.passenger_count
            refund_amount = current_cost - new_cost

            if refund_amount <= 0:
                continue

            description = (
                f"Price reduction refund for {trip.destination.name} "
                f"({passenger_total} passengers): {symbol}{current_cost} -> {symbol}{new_cost}"
            )

            try:
                with self.db.begin_nested():
                    self.ledger.credit(
                        booking.user_id,
                        refund_amount,
                        description,
                        transaction_type=TransactionType.REFUND,
                        booking_id=booking.id,
                        trip_id=trip_id
                    )
                    booking.credits_cost = new_cost
                    self.db.flush()
            except Exception as e:
                logger.exception(
                    "Refund failed for booking %s", booking.id,
                    extra={"trip_id": trip_id, "booking_id": booking.id}
                )
                result.errors.append(f"Booking {booking.id}: {e}")
                continue

            result.refund_details.append(RefundDetail(
                booking_id=booking.id,
                user_id=booking.user_id,
                user_name=booking.user.display_name if booking.user else "Unknown",
                original_cost=current_cost,
                new_cost=new_cost,
                refund_amount=refund_amount
            ))
            result.refunds_processed += 1
            result.total_refunded += refund_amount

        result.success = True
        logger.info(
            "Processed %d refunds totaling %s%s for trip %s",
            result.refunds_processed, symbol, result.total_refunded, trip_id,
            extra={"trip_id": trip_id}
        )
        return result

    def get_trip_refund_history(self, trip_id: int) -> List[RefundHistoryEntry]:
        """Refund transactions tied to a trip, newest first"""
        transactions = self.db.query(CreditTransaction).options(
            joinedload(CreditTransaction.user)
        ).filter(
            CreditTransaction.trip_id == trip_id,
            CreditTransaction.type == TransactionType.REFUND.value
        ).order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc()).all()

        return [
            RefundHistoryEntry(
                transaction_id=transaction.id,
                booking_id=transaction.booking_id,
                user_id=transaction.user_id,
                user_name=transaction.user.display_name if transaction.user else "Unknown",
                refund_amount=to_credits(transaction.amount),
                refund_date=transaction.created_at,
                description=transaction.description or ""
            )
            for transaction in transactions
        ]
