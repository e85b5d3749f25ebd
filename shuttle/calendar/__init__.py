"""
Calendar Module

Availability checks and trip events for the driver's calendar. Backends
implement the CalendarProvider strategy and are tried in order by a
CalendarProviderChain; the in-house LocalCalendarBlocker is always available.
Trip to event ids live in their own mapping table.

Calendar work runs after the booking transaction commits and never rolls a
booking back.
"""

from .router import router
from .providers import CalendarProvider, CalendarProviderChain, LocalCalendarBlocker
from .service import CalendarSyncService
from .schemas import AvailabilityCheck

__all__ = [
    "router",
    "CalendarProvider",
    "CalendarProviderChain",
    "LocalCalendarBlocker",
    "CalendarSyncService",
    "AvailabilityCheck"
]
