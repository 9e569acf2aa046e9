"""
Capacity ledger: seat availability derived from confirmed registrations.

availableSeats(E) = E.total_seats - count(registrations of E with status confirmed)

Nothing here is cached or stored. Every read recounts, so a cancellation is
reflected by the next read without any explicit "give back" step.

The one write in this module is `bump_event_version`, the compare-and-swap
that seat-affecting transitions commit through:

    UPDATE events SET version = version + 1 [, <values>]
    WHERE id = :event_id AND version = :expected_version

If a concurrent transition committed after the caller read the event (and
therefore after it counted confirmed registrations), the version no longer
matches, zero rows are updated and the caller must retry against a fresh
count. Seat-affecting callers read the event with `for_update=True`; on
PostgreSQL that row lock already orders them, so a mismatch is only expected
where the lock is unavailable (SQLite).
"""

from dataclasses import dataclass

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.event import Event
from app.models.registration import Registration, RegistrationStatus


@dataclass(frozen=True)
class SeatCheck:
    ok: bool
    available_seats: int
    message: str


@dataclass(frozen=True)
class EventAvailability:
    event_id: int
    title: str
    total_seats: int
    confirmed_registrations: int
    cancellations: int
    waitlisted: int
    available_seats: int
    occupancy_rate: float


async def load_event(db: AsyncSession, event_id: int, for_update: bool = False) -> Event:
    """
    Read the event row, bypassing stale identity-map state.

    With `for_update` the row stays locked until the transaction ends, so on
    PostgreSQL seat-affecting transitions for one event queue up behind each
    other and each one counts after the previous one committed. SQLite has no
    row locks (the clause is not rendered); there `bump_event_version`
    catches the overlap instead.
    """
    query = (
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    event = result.scalar_one_or_none()
    if not event:
        raise NotFoundError(f"Event {event_id} not found")
    return event


async def count_by_status(db: AsyncSession, event_id: int, status: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Registration)
        .where(Registration.event_id == event_id, Registration.status == status)
    )
    return result.scalar_one()


async def count_confirmed(db: AsyncSession, event_id: int) -> int:
    return await count_by_status(db, event_id, RegistrationStatus.CONFIRMED)


async def confirmed_counts(db: AsyncSession, event_ids: list[int]) -> dict[int, int]:
    """Confirmed registrations for several events in one grouped query."""
    if not event_ids:
        return {}
    result = await db.execute(
        select(Registration.event_id, func.count())
        .where(
            Registration.event_id.in_(event_ids),
            Registration.status == RegistrationStatus.CONFIRMED,
        )
        .group_by(Registration.event_id)
    )
    counts = {event_id: 0 for event_id in event_ids}
    counts.update({event_id: count for event_id, count in result.all()})
    return counts


def confirmed_count_column():
    """
    Confirmed registrations of the enclosing query's event as a correlated
    scalar subquery, for queries that filter or order by availability.
    """
    return (
        select(func.count())
        .select_from(Registration)
        .where(
            Registration.event_id == Event.id,
            Registration.status == RegistrationStatus.CONFIRMED,
        )
        .correlate(Event)
        .scalar_subquery()
    )


def seats_left(total_seats: int, confirmed: int) -> int:
    return total_seats - confirmed


def occupancy_rate(confirmed: int, total_seats: int) -> float:
    # total_seats >= 1 is enforced by the schema and a CHECK constraint
    return confirmed / total_seats * 100


async def get_available_seats(db: AsyncSession, event_id: int) -> int:
    event = await load_event(db, event_id)
    return seats_left(event.total_seats, await count_confirmed(db, event_id))


async def has_available_seats(db: AsyncSession, event_id: int, requested: int = 1) -> SeatCheck:
    available = await get_available_seats(db, event_id)
    if available >= requested:
        return SeatCheck(ok=True, available_seats=available, message="Seats available")
    return SeatCheck(ok=False, available_seats=available, message=f"Only {available} seats available")


async def get_event_availability(db: AsyncSession, event_id: int) -> EventAvailability:
    event = await load_event(db, event_id)
    confirmed = await count_confirmed(db, event_id)
    return EventAvailability(
        event_id=event.id,
        title=event.title,
        total_seats=event.total_seats,
        confirmed_registrations=confirmed,
        cancellations=await count_by_status(db, event_id, RegistrationStatus.CANCELLED),
        waitlisted=await count_by_status(db, event_id, RegistrationStatus.WAITLISTED),
        available_seats=seats_left(event.total_seats, confirmed),
        occupancy_rate=occupancy_rate(confirmed, event.total_seats),
    )


async def bump_event_version(
    db: AsyncSession,
    event_id: int,
    expected_version: int,
    **values,
) -> bool:
    """
    Conditionally advance the event's version (and apply `values`).
    Returns False when another transaction got there first.
    """
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.version == expected_version)
        .values(version=Event.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
