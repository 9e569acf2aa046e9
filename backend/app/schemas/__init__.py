from app.schemas.user import UserCreate, UserResponse, UserLogin, Token
from app.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventListResponse,
    EventAvailabilityResponse, EventStatsResponse, EventDeleteResponse,
)
from app.schemas.registration import (
    RegistrationResponse, RegistrationStatusUpdate,
    RegistrationCheckResponse, RegistrationStatsResponse,
    RegistrationEventSummary, RegistrationUserSummary,
    UserRegistrationResponse, EventRegistrationResponse,
)
from app.schemas.dashboard import DashboardStats, UserDashboardResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "EventCreate", "EventUpdate", "EventResponse", "EventListResponse",
    "EventAvailabilityResponse", "EventStatsResponse", "EventDeleteResponse",
    "RegistrationResponse", "RegistrationStatusUpdate",
    "RegistrationCheckResponse", "RegistrationStatsResponse",
    "RegistrationEventSummary", "RegistrationUserSummary",
    "UserRegistrationResponse", "EventRegistrationResponse",
    "DashboardStats", "UserDashboardResponse",
]
