"""
Calendar providers.

A provider answers two questions for the booking flow: is a time slot free,
and please put this trip on the calendar. ``CalendarProviderChain`` holds an
ordered list of providers and falls through to the next one whenever a
provider raises.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session

from shuttle.exceptions import CalendarUnavailable
from shuttle.logger import get_logger
from shuttle.models import CalendarBlock, Trip

logger = get_logger(__name__)


class CalendarProvider(ABC):
    """Strategy interface for a calendar backend"""

    name = "provider"

    @abstractmethod
    def check_availability(
        self,
        start_time: datetime,
        end_time: datetime,
        exclude_trip_id: Optional[int] = None
    ) -> bool:
        """True when nothing overlaps [start_time, end_time)"""

    @abstractmethod
    def create_event(self, trip: Trip) -> str:
        """Put the trip on the calendar and return the provider's event id"""

    @abstractmethod
    def delete_event(self, trip_id: int, event_id: str) -> None:
        """Remove the trip's event"""


class LocalCalendarBlocker(CalendarProvider):
    """In-house blocker that keeps blocked slots in the calendar_blocks table"""

    name = "local"

    def __init__(self, db: Session):
        self.db = db

    def check_availability(self, start_time, end_time, exclude_trip_id=None):
        query = self.db.query(CalendarBlock).filter(
            CalendarBlock.start_time < end_time,
            CalendarBlock.end_time > start_time
        )
        if exclude_trip_id is not None:
            query = query.filter(
                (CalendarBlock.trip_id.is_(None)) | (CalendarBlock.trip_id != exclude_trip_id)
            )

        conflict = query.first()
        if conflict:
            logger.info("Time slot conflicts with calendar block: %s", conflict.reason)
            return False
        return True

    def create_event(self, trip):
        existing = self.db.query(CalendarBlock).filter(CalendarBlock.trip_id == trip.id).first()
        if existing:
            return f"local-{existing.id}"

        destination = trip.destination.name if trip.destination else "trip"
        block = CalendarBlock(
            trip_id=trip.id,
            start_time=trip.start_time,
            end_time=trip.end_time,
            reason=f"Shuttle trip to {destination}"
        )
        self.db.add(block)
        self.db.flush()
        return f"local-{block.id}"

    def delete_event(self, trip_id, event_id):
        self.db.query(CalendarBlock).filter(CalendarBlock.trip_id == trip_id).delete()
        self.db.flush()

    def block_time_slot(
        self,
        start_time: datetime,
        end_time: datetime,
        reason: str,
        trip_id: Optional[int] = None
    ) -> CalendarBlock:
        """Block a slot by hand (driver off, maintenance, ...)"""
        if end_time <= start_time:
            raise ValueError("Block must end after it starts")

        block = CalendarBlock(start_time=start_time, end_time=end_time, reason=reason, trip_id=trip_id)
        self.db.add(block)
        self.db.flush()
        return block

    def list_blocks(self) -> List[CalendarBlock]:
        return self.db.query(CalendarBlock).order_by(CalendarBlock.start_time.asc()).all()


class CalendarProviderChain:
    """Ordered providers, tried until one answers"""

    def __init__(self, providers: Sequence[CalendarProvider]):
        if not providers:
            raise ValueError("At least one calendar provider is required")
        self.providers = list(providers)

    def get(self, name: str) -> Optional[CalendarProvider]:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    def check_availability(
        self,
        start_time: datetime,
        end_time: datetime,
        exclude_trip_id: Optional[int] = None
    ) -> Tuple[str, bool]:
        failures = []
        for provider in self.providers:
            try:
                return provider.name, provider.check_availability(start_time, end_time, exclude_trip_id)
            except Exception as e:
                logger.warning(
                    "Availability check failed on %s, trying next provider", provider.name,
                    extra={"provider": provider.name}
                )
                failures.append(f"{provider.name}: {e}")
        raise CalendarUnavailable("; ".join(failures))

    def create_event(self, trip: Trip) -> Tuple[str, str]:
        failures = []
        for provider in self.providers:
            try:
                return provider.name, provider.create_event(trip)
            except Exception as e:
                logger.warning(
                    "Event creation failed on %s, trying next provider", provider.name,
                    extra={"provider": provider.name, "trip_id": trip.id}
                )
                failures.append(f"{provider.name}: {e}")
        raise CalendarUnavailable("; ".join(failures))
