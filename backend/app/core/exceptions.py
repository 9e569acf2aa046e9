"""
Domain errors raised by the service layer and their HTTP mapping.

Each error carries a `kind` (machine-readable) and a human-readable message.
The handler registered in main.py turns them into
    {"detail": <message>, "kind": <kind>}
with the status code of the error class.
"""

from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)


class DomainError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    kind: str = "domain_error"

    def __init__(self, message: str, kind: Optional[str] = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    kind = "conflict"


class AlreadyRegisteredError(ConflictError):
    kind = "already_registered"


class AlreadyCancelledError(ConflictError):
    kind = "already_cancelled"


class EventFullError(ConflictError):
    kind = "full"


class CapacityConflictError(ConflictError):
    kind = "capacity_conflict"


class HasRegistrationsError(ConflictError):
    kind = "has_registrations"


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "forbidden"


class InvalidInputError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_input"


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "unauthorized"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.warning(
        "domain_error",
        kind=exc.kind,
        status_code=exc.status_code,
        error=exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
        headers=headers,
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
