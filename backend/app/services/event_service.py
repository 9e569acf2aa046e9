"""
Event service handling CRUD and capacity-affecting updates.

Seat totals are checked against the live confirmed count at update time.
That rule spans two tables, so it cannot be a database constraint; instead
capacity updates and deletions lock the event row and commit through the
same event-version compare-and-swap as registrations (see
registration_service), retrying until they succeed or are rejected.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    CapacityConflictError,
    ConflictError,
    ForbiddenError,
    HasRegistrationsError,
    InvalidInputError,
)
from app.core.logging import get_logger
from app.core.metrics import record_capacity_retry
from app.core.security import Caller
from app.models.event import Event
from app.models.registration import Registration
from app.schemas.event import EventCreate, EventUpdate
from app.services.capacity_service import (
    bump_event_version,
    confirmed_counts,
    count_confirmed,
    load_event,
    seats_left,
)

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")


async def create_event(db: AsyncSession, event_data: EventCreate, caller: Caller) -> Event:
    """Create a new event. Admin only."""
    _require_admin(caller)

    if _as_utc(event_data.date) <= datetime.now(timezone.utc):
        raise InvalidInputError("Event date must be in the future")

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_data.date,
        location=event_data.location,
        image_url=event_data.image_url,
        is_featured=event_data.is_featured,
        total_seats=event_data.total_seats,
        organizer_id=caller.user_id,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, seats=event.total_seats)
    return event


async def get_event(db: AsyncSession, event_id: int) -> tuple[Event, int]:
    """Get a single event by ID together with its available seats."""
    event = await load_event(db, event_id)
    return event, seats_left(event.total_seats, await count_confirmed(db, event_id))


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = False,
    title: Optional[str] = None,
    on_date: Optional[date] = None,
) -> tuple[list[tuple[Event, int]], int]:
    """
    List events with pagination, ordered by date.
    Optional filters: case-insensitive title substring and a calendar day (UTC).
    Available seats for the page come from one grouped count query.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.date >= datetime.now(timezone.utc))
    if title:
        query = query.where(Event.title.ilike(f"%{title}%"))
    if on_date:
        day_start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
        query = query.where(Event.date >= day_start, Event.date < day_start + timedelta(days=1))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.date.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    counts = await confirmed_counts(db, [event.id for event in events])
    return [(event, seats_left(event.total_seats, counts[event.id])) for event in events], total


async def update_event_capacity(db: AsyncSession, event_id: int, new_total_seats: int) -> Event:
    """
    Change an event's seat total.
    Rejected when the new total is below the current confirmed count;
    reducing to exactly the confirmed count is allowed.
    """
    attempt = 0
    while True:
        attempt += 1
        event = await load_event(db, event_id, for_update=True)
        confirmed = await count_confirmed(db, event_id)

        if new_total_seats < confirmed:
            logger.warning(
                "capacity_update_rejected",
                event_id=event_id,
                requested=new_total_seats,
                confirmed=confirmed,
            )
            raise CapacityConflictError(
                f"Cannot reduce capacity below current registration count ({confirmed})"
            )

        if await bump_event_version(db, event_id, event.version, total_seats=new_total_seats):
            await db.refresh(event)
            logger.info(
                "event_capacity_updated",
                event_id=event_id,
                total_seats=new_total_seats,
                confirmed=confirmed,
                attempt=attempt,
            )
            return event

        logger.info("capacity_update_retry", event_id=event_id, attempt=attempt, reason="version_conflict")
        record_capacity_retry("capacity_update")
        await db.rollback()


async def update_event(
    db: AsyncSession,
    event_id: int,
    event_data: EventUpdate,
    caller: Caller,
) -> tuple[Event, int]:
    """Partially update an event. Admin only; events that already started are frozen."""
    _require_admin(caller)

    event = await load_event(db, event_id)
    now = datetime.now(timezone.utc)
    if _as_utc(event.date) <= now:
        raise ConflictError("Cannot modify an event that has already started", kind="event_started")

    updates = event_data.model_dump(exclude_none=True)
    if "date" in updates and _as_utc(updates["date"]) <= now:
        raise InvalidInputError("Event date must be in the future")

    new_total_seats = updates.pop("total_seats", None)
    if new_total_seats is not None and new_total_seats != event.total_seats:
        event = await update_event_capacity(db, event_id, new_total_seats)

    for field, value in updates.items():
        setattr(event, field, value)
    await db.flush()
    await db.refresh(event)

    logger.info("event_updated", event_id=event.id, fields=sorted(updates), total_seats=event.total_seats)
    return event, seats_left(event.total_seats, await count_confirmed(db, event_id))


async def delete_event(db: AsyncSession, event_id: int, caller: Caller) -> None:
    """
    Delete an event. Admin only.
    Refused while any registration, cancelled ones included, references it.
    """
    _require_admin(caller)

    attempt = 0
    while True:
        attempt += 1
        event = await load_event(db, event_id, for_update=True)
        result = await db.execute(
            select(func.count()).select_from(Registration).where(Registration.event_id == event_id)
        )
        registrations = result.scalar_one()
        if registrations > 0:
            raise HasRegistrationsError(
                f"Cannot delete event with registrations ({registrations} on record)"
            )

        # Claim the version so a registration racing the delete either lands
        # first (and is counted on retry) or finds the event gone
        if await bump_event_version(db, event_id, event.version):
            await db.delete(event)
            await db.flush()
            logger.info("event_deleted", event_id=event_id, attempt=attempt)
            return

        record_capacity_retry("delete")
        await db.rollback()
