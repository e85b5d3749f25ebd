from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class AvailabilityCheck(BaseModel):
    available: bool
    reason: Optional[str] = None
    provider: Optional[str] = None


class CalendarBlockCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: str = Field(..., min_length=1, max_length=255)
    trip_id: Optional[int] = None


class CalendarBlock(CalendarBlockCreate):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CalendarEventMapping(BaseModel):
    trip_id: int
    provider: str
    external_event_id: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
