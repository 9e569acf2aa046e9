"""
User dashboard: a user's upcoming registrations, totals, recent activity
and events they might register for next.
"""

from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.logging import get_logger
from app.models.event import Event, EventStatus
from app.models.registration import Registration, RegistrationStatus
from app.schemas.dashboard import DashboardStats, UserDashboardResponse
from app.schemas.event import EventResponse
from app.schemas.registration import UserRegistrationResponse
from app.services.capacity_service import confirmed_count_column

logger = get_logger(__name__)

UPCOMING_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10
RECOMMENDED_LIMIT = 3


async def _upcoming_registrations(db: AsyncSession, user_id: int, now: datetime) -> list[Registration]:
    """Confirmed registrations for events that have not started, soonest first."""
    result = await db.execute(
        select(Registration)
        .join(Event, Registration.event_id == Event.id)
        .where(
            Registration.user_id == user_id,
            Registration.status == RegistrationStatus.CONFIRMED,
            Event.date >= now,
        )
        .options(selectinload(Registration.event))
        .order_by(Event.date.asc(), Event.id.asc())
        .limit(UPCOMING_LIMIT)
    )
    return list(result.scalars().all())


async def _registration_stats(db: AsyncSession, user_id: int) -> DashboardStats:
    result = await db.execute(
        select(Registration.status, func.count())
        .where(Registration.user_id == user_id)
        .group_by(Registration.status)
    )
    by_status = dict(result.all())
    return DashboardStats(
        total_registrations=sum(by_status.values()),
        active_registrations=by_status.get(RegistrationStatus.CONFIRMED, 0),
        cancelled_registrations=by_status.get(RegistrationStatus.CANCELLED, 0),
    )


async def _recent_activity(db: AsyncSession, user_id: int) -> list[Registration]:
    result = await db.execute(
        select(Registration)
        .where(Registration.user_id == user_id)
        .options(selectinload(Registration.event))
        .order_by(Registration.registration_date.desc(), Registration.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    return list(result.scalars().all())


async def _recommended_events(db: AsyncSession, user_id: int, now: datetime) -> list[tuple[Event, int]]:
    """
    Upcoming events with a free seat that the user has no registration for
    (in any status), soonest first.
    """
    available = Event.total_seats - confirmed_count_column()
    already_registered = select(Registration.event_id).where(Registration.user_id == user_id)

    result = await db.execute(
        select(Event, available.label("available_seats"))
        .where(
            Event.date >= now,
            Event.status != EventStatus.CANCELLED,
            Event.id.not_in(already_registered),
            available > 0,
        )
        .order_by(Event.date.asc(), Event.id.asc())
        .limit(RECOMMENDED_LIMIT)
    )
    return [(event, seats) for event, seats in result.all()]


async def get_user_dashboard(db: AsyncSession, user_id: int) -> UserDashboardResponse:
    now = datetime.now(timezone.utc)

    upcoming = await _upcoming_registrations(db, user_id, now)
    stats = await _registration_stats(db, user_id)
    recent = await _recent_activity(db, user_id)
    recommended = await _recommended_events(db, user_id, now)

    logger.debug(
        "user_dashboard_built",
        user_id=user_id,
        upcoming=len(upcoming),
        recommended=len(recommended),
    )
    return UserDashboardResponse(
        upcoming_events=[UserRegistrationResponse.model_validate(r) for r in upcoming],
        stats=stats,
        recent_activity=[UserRegistrationResponse.model_validate(r) for r in recent],
        recommended_events=[EventResponse.from_event(event, seats) for event, seats in recommended],
    )
