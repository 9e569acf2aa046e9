"""
Pydantic schemas for the user dashboard.
"""

from pydantic import BaseModel

from app.schemas.event import EventResponse
from app.schemas.registration import UserRegistrationResponse


class DashboardStats(BaseModel):
    total_registrations: int
    active_registrations: int
    cancelled_registrations: int


class UserDashboardResponse(BaseModel):
    upcoming_events: list[UserRegistrationResponse]
    stats: DashboardStats
    recent_activity: list[UserRegistrationResponse]
    recommended_events: list[EventResponse]
