"""
Registration lifecycle: create, re-activate, cancel and override registrations.

STATE MACHINE
=============

    (none)     --register-->  confirmed    new row, registration_date = now
    cancelled  --register-->  confirmed    same row, registration_date = now
    waitlisted --register-->  confirmed    same row, registration_date = now
    confirmed  --register-->  AlreadyRegistered
    confirmed  --cancel---->  cancelled    owner or admin only
    waitlisted --cancel---->  cancelled    owner or admin only
    cancelled  --cancel---->  AlreadyCancelled
    any        --admin set->  confirmed | cancelled | waitlisted

Nothing enters `waitlisted` automatically; only the admin override does.

CONCURRENCY STRATEGY: Compare-and-swap on the event version, with retry
=======================================================================

Problem:
  Two users register for the last seat at the same time. Both count
  confirmed registrations, both see one seat left, both insert.
  Result: overbooking.

Solution:
  1. Read and lock the event (its version), then count confirmed registrations
  2. Reject with Full if no seat is left
  3. UPDATE events SET version = version + 1
     WHERE id = :event_id AND version = :version_read_in_step_1
  4. rowcount == 0 means another seat-affecting transition committed after
     step 1, so the count from step 1 may be stale: roll back and start over
  5. Insert / re-activate the registration in the same transaction

  Every transition into `confirmed` goes through steps 1-4, so at most one of
  them can commit per observed (version, count) pair. Cancelling only frees a
  seat and needs no compare-and-swap: the next count reflects it.

  On PostgreSQL the row lock from step 1 makes concurrent transitions for one
  event wait for each other, so step 4 does not fail there. Where the lock
  is not available (SQLite) a failed swap always means another transition
  committed, so retrying makes progress; the loop only ends in success or a
  domain error (Full, NotFound, AlreadyRegistered). Contention is never
  surfaced to the caller.
"""

import time

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    AlreadyCancelledError,
    AlreadyRegisteredError,
    EventFullError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from app.core.logging import get_logger
from app.core.metrics import (
    record_capacity_retry,
    record_registration_attempt,
    record_transition,
    registration_latency,
)
from app.core.security import Caller
from app.models.registration import Registration, RegistrationStatus, utcnow
from app.schemas.registration import RegistrationCheckResponse, RegistrationStatsResponse
from app.services.capacity_service import (
    bump_event_version,
    count_confirmed,
    load_event,
    seats_left,
)

logger = get_logger(__name__)


async def _find_lineage(db: AsyncSession, user_id: int, event_id: int):
    result = await db.execute(
        select(Registration)
        .where(Registration.user_id == user_id, Registration.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_registration(db: AsyncSession, registration_id: int) -> Registration:
    result = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if not registration:
        raise NotFoundError("Registration not found")
    return registration


def _reject_if_confirmed(registration) -> None:
    if registration and registration.status == RegistrationStatus.CONFIRMED:
        record_registration_attempt("already_registered")
        raise AlreadyRegisteredError("Already registered for this event")


async def _claim_seat(db: AsyncSession, event_id: int, operation: str, attempt: int) -> bool:
    """
    Steps 1-4 of the strategy above. Returns False when the caller must retry
    (the transaction has already been rolled back).
    """
    event = await load_event(db, event_id, for_update=True)
    confirmed = await count_confirmed(db, event_id)
    available = seats_left(event.total_seats, confirmed)

    if available < 1:
        logger.warning(
            "registration_rejected_full",
            event_id=event_id,
            total_seats=event.total_seats,
            confirmed=confirmed,
            operation=operation,
        )
        raise EventFullError("Event is fully booked")

    if await bump_event_version(db, event_id, event.version):
        return True

    logger.info(
        "registration_retry",
        event_id=event_id,
        attempt=attempt,
        operation=operation,
        reason="version_conflict",
    )
    record_capacity_retry(operation)
    await db.rollback()
    return False


async def register_for_event(
    db: AsyncSession,
    user_id: int,
    event_id: int,
) -> tuple[Registration, bool]:
    """
    Register a user for an event.
    Returns the registration and whether a new record was created
    (False when a cancelled or waitlisted lineage was re-activated).
    """
    started = time.perf_counter()
    attempt = 0
    try:
        while True:
            attempt += 1
            # A lineage can only exist for an existing event, so an unknown
            # event falls through to _claim_seat and fails there with NotFound
            _reject_if_confirmed(await _find_lineage(db, user_id, event_id))

            try:
                claimed = await _claim_seat(db, event_id, "register", attempt)
            except NotFoundError:
                record_registration_attempt("not_found")
                raise
            except EventFullError:
                record_registration_attempt("full")
                raise
            if not claimed:
                continue

            # Read again under the event lock: a second submission by the same
            # user may have committed while this one was waiting
            registration = await _find_lineage(db, user_id, event_id)
            _reject_if_confirmed(registration)

            created = registration is None
            if created:
                registration = Registration(
                    user_id=user_id,
                    event_id=event_id,
                    status=RegistrationStatus.CONFIRMED,
                    registration_date=utcnow(),
                )
                db.add(registration)
            else:
                previous_status = registration.status
                registration.status = RegistrationStatus.CONFIRMED
                registration.registration_date = utcnow()

            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                record_registration_attempt("already_registered")
                raise AlreadyRegisteredError("Already registered for this event")
            await db.refresh(registration)

            record_registration_attempt("success" if created else "reactivated")
            record_transition(RegistrationStatus.CONFIRMED, "user")
            if created:
                logger.info(
                    "registration_created",
                    registration_id=registration.id,
                    user_id=user_id,
                    event_id=event_id,
                    attempt=attempt,
                )
            else:
                logger.info(
                    "registration_reactivated",
                    registration_id=registration.id,
                    user_id=user_id,
                    event_id=event_id,
                    previous_status=previous_status,
                    attempt=attempt,
                )
            return registration, created
    finally:
        registration_latency.observe(time.perf_counter() - started)


async def cancel_registration(
    db: AsyncSession,
    registration_id: int,
    caller: Caller,
) -> Registration:
    """Cancel a registration. The freed seat shows up on the next ledger read."""
    registration = await _get_registration(db, registration_id)

    if not caller.can_act_for(registration.user_id):
        logger.warning(
            "registration_cancel_forbidden",
            registration_id=registration_id,
            caller_id=caller.user_id,
        )
        raise ForbiddenError("Not authorized to cancel this registration")

    if registration.status == RegistrationStatus.CANCELLED:
        raise AlreadyCancelledError("Registration already cancelled")

    registration.status = RegistrationStatus.CANCELLED
    await db.flush()
    await db.refresh(registration)

    record_transition(RegistrationStatus.CANCELLED, "admin" if caller.user_id != registration.user_id else "user")
    logger.info(
        "registration_cancelled",
        registration_id=registration.id,
        user_id=registration.user_id,
        event_id=registration.event_id,
        cancelled_by=caller.user_id,
    )
    return registration


async def update_registration_status(
    db: AsyncSession,
    registration_id: int,
    new_status: str,
    caller: Caller,
) -> Registration:
    """
    Administrative override of a registration's status.
    Moving a registration into `confirmed` still has to fit the event's capacity.
    """
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")

    if new_status not in RegistrationStatus.ALL:
        raise InvalidInputError(
            f"Invalid status value '{new_status}'. Allowed: {', '.join(RegistrationStatus.ALL)}"
        )

    attempt = 0
    while True:
        attempt += 1
        registration = await _get_registration(db, registration_id)
        previous_status = registration.status

        if new_status == RegistrationStatus.CONFIRMED and previous_status != RegistrationStatus.CONFIRMED:
            if not await _claim_seat(db, registration.event_id, "admin_status", attempt):
                continue

        registration.status = new_status
        await db.flush()
        await db.refresh(registration)

        record_transition(new_status, "admin")
        logger.info(
            "registration_status_overridden",
            registration_id=registration.id,
            previous_status=previous_status,
            new_status=new_status,
            admin_id=caller.user_id,
        )
        return registration


async def check_registration_status(
    db: AsyncSession,
    user_id: int,
    event_id: int,
) -> RegistrationCheckResponse:
    registration = await _find_lineage(db, user_id, event_id)
    if not registration:
        return RegistrationCheckResponse(registered=False)

    return RegistrationCheckResponse(
        registered=registration.status == RegistrationStatus.CONFIRMED,
        status=registration.status,
        registration_id=registration.id,
        registration_date=registration.registration_date,
    )


async def list_user_registrations(db: AsyncSession, user_id: int) -> list[Registration]:
    """Get all registrations for a user with their events, most recent first."""
    result = await db.execute(
        select(Registration)
        .where(Registration.user_id == user_id)
        .options(selectinload(Registration.event))
        .order_by(Registration.registration_date.desc(), Registration.id.desc())
    )
    return list(result.scalars().all())


async def list_event_registrations(
    db: AsyncSession,
    event_id: int,
    caller: Caller,
) -> list[Registration]:
    """Get all registrations for an event with their users, most recent first. Admin only."""
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")

    await load_event(db, event_id)
    result = await db.execute(
        select(Registration)
        .where(Registration.event_id == event_id)
        .options(selectinload(Registration.user))
        .order_by(Registration.registration_date.desc(), Registration.id.desc())
    )
    return list(result.scalars().all())


async def get_registration_stats(db: AsyncSession, caller: Caller) -> RegistrationStatsResponse:
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")

    result = await db.execute(
        select(Registration.status, func.count()).group_by(Registration.status)
    )
    by_status = dict(result.all())
    return RegistrationStatsResponse(
        total=sum(by_status.values()),
        confirmed=by_status.get(RegistrationStatus.CONFIRMED, 0),
        cancelled=by_status.get(RegistrationStatus.CANCELLED, 0),
        waitlisted=by_status.get(RegistrationStatus.WAITLISTED, 0),
    )
