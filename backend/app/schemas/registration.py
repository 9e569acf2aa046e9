"""
Pydantic schemas for registration request/response validation.

Listings nest a short summary of the other side of the registration: a user's
own registrations carry the event, an event's registrations carry the user.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class RegistrationResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    status: str
    registration_date: datetime

    model_config = {"from_attributes": True}


class RegistrationEventSummary(BaseModel):
    id: int
    title: str
    description: Optional[str]
    date: datetime
    location: Optional[str]
    image_url: Optional[str]

    model_config = {"from_attributes": True}


class RegistrationUserSummary(BaseModel):
    id: int
    username: str
    email: str

    model_config = {"from_attributes": True}


class UserRegistrationResponse(RegistrationResponse):
    event: RegistrationEventSummary


class EventRegistrationResponse(RegistrationResponse):
    user: RegistrationUserSummary


class RegistrationStatusUpdate(BaseModel):
    # Checked against the allowed values by the service (400, not 422)
    status: str


class RegistrationCheckResponse(BaseModel):
    registered: bool
    status: Optional[str] = None
    registration_id: Optional[int] = None
    registration_date: Optional[datetime] = None


class RegistrationStatsResponse(BaseModel):
    total: int
    confirmed: int
    cancelled: int
    waitlisted: int
