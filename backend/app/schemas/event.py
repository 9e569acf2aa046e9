"""
Pydantic schemas for event-related request/response validation.

Event responses always carry `available_seats`, which is not a column:
it is computed by the capacity ledger and passed in alongside the ORM row.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from app.models.event import Event

EventStatusValue = Literal["scheduled", "ongoing", "completed", "cancelled"]


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: datetime
    location: Optional[str] = Field(None, max_length=255)
    image_url: Optional[str] = Field(None, max_length=500)
    is_featured: bool = False
    total_seats: int = Field(..., gt=0, le=100000)


class EventUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    image_url: Optional[str] = Field(None, max_length=500)
    is_featured: Optional[bool] = None
    total_seats: Optional[int] = Field(None, gt=0, le=100000)
    status: Optional[EventStatusValue] = None


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    date: datetime
    location: Optional[str]
    image_url: Optional[str]
    is_featured: bool
    total_seats: int
    available_seats: int
    status: str
    organizer_id: int
    created_at: datetime

    @classmethod
    def from_event(cls, event: Event, available_seats: int) -> "EventResponse":
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            date=event.date,
            location=event.location,
            image_url=event.image_url,
            is_featured=event.is_featured,
            total_seats=event.total_seats,
            available_seats=available_seats,
            status=event.status,
            organizer_id=event.organizer_id,
            created_at=event.created_at,
        )


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    pages: int
    cached: bool = False


class EventAvailabilityResponse(BaseModel):
    event_id: int
    total_seats: int
    available_seats: int
    occupancy_rate: float


class EventStatsResponse(EventAvailabilityResponse):
    title: str
    confirmed_registrations: int
    cancellations: int
    waitlisted: int


class EventDeleteResponse(BaseModel):
    message: str
    event_id: int
