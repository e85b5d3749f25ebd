"""
Domain errors raised by the shuttle services.

Routers translate them to HTTP responses: ``NotFoundError`` becomes a 404 and
every ``ValueError`` (which all ``BookingError`` subclasses are) becomes a 400.
"""

from decimal import Decimal
from typing import Optional


class ShuttleError(Exception):
    """Base class for all service errors"""


class NotFoundError(ShuttleError, LookupError):
    """A referenced record does not exist"""

    entity = "Record"

    def __init__(self, entity_id=None):
        self.entity_id = entity_id
        message = f"{self.entity} not found"
        if entity_id is not None:
            message = f"{self.entity} {entity_id} not found"
        super().__init__(message)


class TripNotFound(NotFoundError):
    entity = "Trip"


class BookingNotFound(NotFoundError):
    entity = "Booking"


class UserNotFound(NotFoundError):
    entity = "User"


class LocationNotFound(NotFoundError):
    entity = "Destination"


class BookingError(ShuttleError, ValueError):
    """A booking request that cannot be honoured"""


class InsufficientCredits(BookingError):
    def __init__(self, required: Decimal, available: Optional[Decimal] = None):
        self.required = required
        self.available = available
        if available is None:
            super().__init__(f"Insufficient credits: {required} required")
        else:
            super().__init__(f"Insufficient credits: {required} required, {available} available")


class TripFull(BookingError):
    def __init__(self, requested: int, seats_left: int):
        self.requested = requested
        self.seats_left = seats_left
        super().__init__(f"Not enough seats available: {requested} requested, {seats_left} left")


class DuplicateBooking(BookingError):
    pass


class AccountSuspended(BookingError):
    def __init__(self):
        super().__init__("Account suspended. Please contact support.")


class BookingAlreadyCancelled(BookingError):
    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__("Booking is already cancelled")


class InvalidRider(BookingError):
    pass


class TripBusy(BookingError):
    def __init__(self, trip_id):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} is busy with another booking, please retry")


class CalendarUnavailable(ShuttleError):
    """Every configured calendar provider failed"""
