"""
Event endpoints. Listings are cached in Redis; single events, availability
and stats always read the live confirmed count.

Writes commit before invalidating the listing cache, so a listing rebuilt
right after the invalidation can only see committed seat counts.
"""

import math
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.event import (
    EventAvailabilityResponse,
    EventCreate,
    EventDeleteResponse,
    EventListResponse,
    EventResponse,
    EventStatsResponse,
    EventUpdate,
)
from app.services.capacity_service import get_event_availability
from app.services.event_service import create_event, delete_event, get_event, list_events, update_event
from app.services.cache_service import (
    get_cached_events,
    invalidate_event_cache,
    make_event_list_key,
    set_cached_events,
)
from app.core.security import Caller, require_admin
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Admin only."""
    event = await create_event(db, event_data, caller)
    await db.commit()
    await invalidate_event_cache()
    return EventResponse.from_event(event, available_seats=event.total_seats)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(False),
    title: Optional[str] = Query(None, max_length=255),
    on_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with pagination, optionally filtered by title and day.
    Results are cached in Redis; registrations and event changes invalidate them.
    """
    key = make_event_list_key(page, page_size, upcoming_only, title, on_date)
    cached = await get_cached_events(key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    rows, total = await list_events(db, page, page_size, upcoming_only, title, on_date)

    response_data = {
        "events": [EventResponse.from_event(event, available).model_dump() for event, available in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": math.ceil(total / page_size),
        "cached": False,
    }
    await set_cached_events(key, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single event by ID with its current available seats."""
    event, available = await get_event(db, event_id)
    return EventResponse.from_event(event, available)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update an event. Admin only.
    Lowering total_seats below the confirmed registration count returns 409.
    """
    event, available = await update_event(db, event_id, event_data, caller)
    await db.commit()
    await invalidate_event_cache()
    return EventResponse.from_event(event, available)


@router.delete("/{event_id}", response_model=EventDeleteResponse)
async def delete_event_endpoint(
    event_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event that has never had a registration. Admin only."""
    await delete_event(db, event_id, caller)
    await db.commit()
    await invalidate_event_cache()
    return EventDeleteResponse(message="Event removed", event_id=event_id)


@router.get("/{event_id}/availability", response_model=EventAvailabilityResponse)
async def event_availability_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Seat total, available seats and occupancy rate."""
    availability = await get_event_availability(db, event_id)
    return EventAvailabilityResponse(
        event_id=availability.event_id,
        total_seats=availability.total_seats,
        available_seats=availability.available_seats,
        occupancy_rate=availability.occupancy_rate,
    )


@router.get("/{event_id}/stats", response_model=EventStatsResponse)
async def event_stats_endpoint(
    event_id: int,
    caller: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Full capacity ledger numbers for an event. Admin only."""
    availability = await get_event_availability(db, event_id)
    return EventStatsResponse(**asdict(availability))
