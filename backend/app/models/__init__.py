from app.models.user import User, UserRole
from app.models.event import Event, EventStatus
from app.models.registration import Registration, RegistrationStatus

__all__ = [
    "User", "UserRole",
    "Event", "EventStatus",
    "Registration", "RegistrationStatus",
]
