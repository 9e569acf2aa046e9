"""
Registration endpoints: register, cancel, check, list and admin override.

Every seat-affecting write commits before the event listing cache is
invalidated (see events.py).
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.registration import (
    EventRegistrationResponse,
    RegistrationCheckResponse,
    RegistrationResponse,
    RegistrationStatsResponse,
    RegistrationStatusUpdate,
    UserRegistrationResponse,
)
from app.services.registration_service import (
    cancel_registration,
    check_registration_status,
    get_registration_stats,
    list_event_registrations,
    list_user_registrations,
    register_for_event,
    update_registration_status,
)
from app.services.cache_service import invalidate_event_cache
from app.core.security import Caller, get_current_caller, require_admin

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.get("/mine", response_model=list[UserRegistrationResponse])
async def my_registrations(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """All registrations of the authenticated user, most recent first."""
    return await list_user_registrations(db, caller.user_id)


@router.get("/stats", response_model=RegistrationStatsResponse)
async def registration_stats(
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Registration totals by status. Admin only."""
    return await get_registration_stats(db, caller)


@router.get("/check/{event_id}", response_model=RegistrationCheckResponse)
async def check_registration(
    event_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Whether the authenticated user currently holds a seat for the event."""
    return await check_registration_status(db, caller.user_id, event_id)


@router.get("/event/{event_id}", response_model=list[EventRegistrationResponse])
async def event_registrations(
    event_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All registrations for an event, most recent first. Admin only."""
    return await list_event_registrations(db, event_id, caller)


@router.post("/{event_id}", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register(
    event_id: int,
    response: Response,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """
    Register for an event.

    Returns 201 for a new registration and 200 when a previously cancelled
    registration is re-activated (same id). 409 when already registered or
    when the event is full.
    """
    registration, created = await register_for_event(db, caller.user_id, event_id)
    if not created:
        response.status_code = status.HTTP_200_OK
    await db.commit()
    await invalidate_event_cache()
    return registration


@router.put("/{registration_id}/cancel", response_model=RegistrationResponse)
async def cancel(
    registration_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a registration. Owner or admin."""
    registration = await cancel_registration(db, registration_id, caller)
    await db.commit()
    await invalidate_event_cache()
    return registration


@router.put("/{registration_id}/status", response_model=RegistrationResponse)
async def override_status(
    registration_id: int,
    payload: RegistrationStatusUpdate,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Set a registration's status to confirmed, cancelled or waitlisted. Admin only."""
    registration = await update_registration_status(db, registration_id, payload.status, caller)
    await db.commit()
    await invalidate_event_cache()
    return registration
