from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session, joinedload

from shuttle.calendar.providers import CalendarProviderChain, LocalCalendarBlocker
from shuttle.calendar.schemas import AvailabilityCheck
from shuttle.config import Settings, settings as default_settings
from shuttle.exceptions import CalendarUnavailable, TripNotFound
from shuttle.logger import get_logger
from shuttle.models import CalendarEventMapping, Trip

logger = get_logger(__name__)


class CalendarSyncService:
    """Keeps trips on the driver's calendar through the provider chain"""

    def __init__(
        self,
        db: Session,
        chain: Optional[CalendarProviderChain] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db
        self.chain = chain or CalendarProviderChain([LocalCalendarBlocker(db)])
        self.settings = settings or default_settings

    def check_availability(
        self,
        start_time: datetime,
        end_time: datetime,
        exclude_trip_id: Optional[int] = None
    ) -> AvailabilityCheck:
        if not self.settings.CALENDAR_AVAILABILITY_ENABLED:
            return AvailabilityCheck(available=True, reason="Calendar availability checking is disabled")

        try:
            provider, available = self.chain.check_availability(start_time, end_time, exclude_trip_id)
        except CalendarUnavailable:
            logger.exception("No calendar provider could check availability")
            return AvailabilityCheck(available=True, reason="Unable to check calendar availability")

        return AvailabilityCheck(
            available=available,
            reason=None if available else "Time slot conflicts with existing calendar events",
            provider=provider
        )

    def get_trip_event(self, trip_id: int) -> Optional[CalendarEventMapping]:
        return self.db.query(CalendarEventMapping).filter(CalendarEventMapping.trip_id == trip_id).first()

    def sync_trip(self, trip_id: int) -> CalendarEventMapping:
        """Create the trip's calendar event once and remember where it lives"""
        trip = self.db.query(Trip).options(
            joinedload(Trip.destination)
        ).filter(Trip.id == trip_id).first()
        if not trip:
            raise TripNotFound(trip_id)

        mapping = self.get_trip_event(trip_id)
        if mapping is not None:
            return mapping

        provider, event_id = self.chain.create_event(trip)
        mapping = CalendarEventMapping(trip_id=trip_id, provider=provider, external_event_id=event_id)
        self.db.add(mapping)
        self.db.commit()
        self.db.refresh(mapping)

        logger.info(
            "Trip %s synced to %s calendar as %s", trip_id, provider, event_id,
            extra={"trip_id": trip_id, "provider": provider}
        )
        return mapping

    def release_trip(self, trip_id: int) -> bool:
        """Drop the trip's event, e.g. when its last passenger cancelled"""
        mapping = self.get_trip_event(trip_id)
        if mapping is None:
            return False

        provider = self.chain.get(mapping.provider)
        if provider is not None:
            provider.delete_event(trip_id, mapping.external_event_id)
        self.db.delete(mapping)
        self.db.commit()
        return True
