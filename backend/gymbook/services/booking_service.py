"""
Booking engine: admission, cancellation, attendance and listing.

Create runs as a single transaction:

  1. Ownership and timing checks (no state touched yet)
  2. Lock the owner's person row FOR NO KEY UPDATE
  3. Duplicate check, membership / weekly quota / credit decision
  4. Capacity-limited insert (see admission_service)
  5. Debit credits if the booking is paid for with credits
  6. Commit

Because the person row is held from step 2 to step 6, two concurrent creates
for the same person cannot both pass the weekly quota or spend the same
credits. Cancellation deletes the row and restores `credits_used` from the
deleted row in the same transaction.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.exceptions import (
    BookingError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
)
from gymbook.core.logging import get_logger
from gymbook.core.metrics import record_booking_attempt, record_cancellation
from gymbook.core.security import Identity
from gymbook.core.timeutils import parse_opt_datetime, week_bounds
from gymbook.models.booking import Booking
from gymbook.models.person import Person
from gymbook.models.session import GymSession, Location, SessionType
from gymbook.schemas.booking import BookingRecord, BookingView, LocationView, SessionTypeView
from gymbook.services import policy
from gymbook.services.admission_service import insert_booking, insert_booking_within_capacity
from gymbook.services.credit_service import debit_credits, lock_person, restore_credits
from gymbook.services.session_catalog import get_max_booking_count, get_session_date_and_cost

logger = get_logger(__name__)

_OUTCOMES = {
    ForbiddenError: "forbidden",
    PaymentRequiredError: "payment_required",
    ConflictError: "conflict",
    NotFoundError: "not_found",
}


def _outcome(exc: BookingError) -> str:
    return _OUTCOMES.get(type(exc), "error")


async def booking_exists(db: AsyncSession, person_id: int, session_id: int) -> bool:
    result = await db.execute(
        select(Booking.person_id).where(
            Booking.person_id == person_id,
            Booking.session_id == session_id,
        )
    )
    return result.first() is not None


async def count_paid_bookings_in_week(
    db: AsyncSession,
    person_id: int,
    session_datetime: datetime,
    exclude_session_id: int,
    tz_name: str,
) -> int:
    """Bookings the person holds for nonzero-cost sessions in the same local calendar week."""
    week_start, week_end = week_bounds(session_datetime, tz_name)
    result = await db.execute(
        select(func.count())
        .select_from(Booking)
        .join(GymSession, Booking.session_id == GymSession.id)
        .where(
            Booking.person_id == person_id,
            Booking.session_id != exclude_session_id,
            GymSession.cost > 0,
            GymSession.datetime >= week_start,
            GymSession.datetime < week_end,
        )
    )
    return result.scalar_one()


async def create_booking(
    db: AsyncSession,
    identity: Identity,
    person_id: int,
    session_id: int,
    credits_used: Optional[int],
    tz_name: str,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Admit a booking for `person_id` on `session_id`.

    `credits_used` is the caller's opt-in to pay with credits; it must be at
    least the session cost when the credit path applies.
    """
    try:
        record = await _admit(db, identity, person_id, session_id, credits_used, tz_name, now)
    except BookingError as e:
        record_booking_attempt(_outcome(e))
        logger.warning(
            "booking_rejected",
            caller_id=identity.uid,
            person_id=person_id,
            session_id=session_id,
            reason=e.message,
        )
        raise
    except SQLAlchemyError as e:
        record_booking_attempt("error")
        logger.error(
            "booking_failed",
            caller_id=identity.uid,
            person_id=person_id,
            session_id=session_id,
            error=str(e),
        )
        raise

    record_booking_attempt("created")
    logger.info(
        "booking_created",
        caller_id=identity.uid,
        person_id=person_id,
        session_id=session_id,
        credits_used=record.credits_used,
    )
    return record


async def _admit(
    db: AsyncSession,
    identity: Identity,
    person_id: int,
    session_id: int,
    credits_used: Optional[int],
    tz_name: str,
    now: Optional[datetime],
) -> BookingRecord:
    policy.authorize_owner(identity, person_id, "create")

    session = await get_session_date_and_cost(db, session_id)
    policy.assert_session_not_started(identity, session.datetime, "create", now)

    person = await lock_person(db, person_id)
    if await booking_exists(db, person_id, session_id):
        raise ConflictError(f"booking already exists for person_id={person_id} and session_id={session_id}")

    tier = policy.owner_membership_tier(identity, person_id, person.role_set)
    paid_this_week = 0
    if policy.requires_weekly_check(tier, session.cost):
        paid_this_week = await count_paid_bookings_in_week(
            db, person_id, session.datetime, session_id, tz_name
        )
    credits_cost = policy.resolve_credit_cost(
        tier, session.cost, paid_this_week, person.credits, credits_used
    )

    max_bookings = await get_max_booking_count(db, session_id)
    if max_bookings is None:
        inserted = await insert_booking(db, person_id, session_id, credits_cost)
    else:
        inserted, max_bookings = await insert_booking_within_capacity(db, person_id, session_id, credits_cost)

    if not inserted:
        # Uncapped inserts only fail on the primary key
        if max_bookings is None or await booking_exists(db, person_id, session_id):
            raise ConflictError(f"booking already exists for person_id={person_id} and session_id={session_id}")
        raise ConflictError(f"session has reached its maximum number of bookings: {max_bookings}")

    if credits_cost > 0:
        await debit_credits(db, person_id, credits_cost)

    await db.commit()
    return BookingRecord(
        person_id=person_id,
        session_id=session_id,
        credits_used=credits_cost,
        attended=False,
    )


async def delete_booking(
    db: AsyncSession,
    identity: Identity,
    person_id: int,
    session_id: int,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """Cancel a booking, refunding whatever credits it recorded."""
    try:
        policy.authorize_owner(identity, person_id, "cancel")
        session = await get_session_date_and_cost(db, session_id)
        policy.assert_session_not_started(identity, session.datetime, "cancel", now)

        result = await db.execute(
            delete(Booking)
            .where(Booking.person_id == person_id, Booking.session_id == session_id)
            .returning(Booking.person_id, Booking.session_id, Booking.credits_used, Booking.attended)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(
                f"no booking found with person_id={person_id} and session_id={session_id}"
            )

        if row.credits_used:
            await restore_credits(db, person_id, row.credits_used)

        await db.commit()
    except BookingError as e:
        record_cancellation(_outcome(e))
        logger.warning(
            "cancellation_rejected",
            caller_id=identity.uid,
            person_id=person_id,
            session_id=session_id,
            reason=e.message,
        )
        raise
    except SQLAlchemyError as e:
        record_cancellation("error")
        logger.error(
            "cancellation_failed",
            caller_id=identity.uid,
            person_id=person_id,
            session_id=session_id,
            error=str(e),
        )
        raise

    record_cancellation("cancelled")
    logger.info(
        "booking_cancelled",
        caller_id=identity.uid,
        person_id=person_id,
        session_id=session_id,
        credits_restored=row.credits_used or 0,
    )
    return BookingRecord(
        person_id=row.person_id,
        session_id=row.session_id,
        credits_used=row.credits_used,
        attended=row.attended,
    )


async def update_booking_attendance(
    db: AsyncSession,
    identity: Identity,
    person_id: int,
    session_id: int,
    attended: bool,
) -> None:
    policy.require_admin(identity)

    result = await db.execute(
        update(Booking)
        .where(Booking.person_id == person_id, Booking.session_id == session_id)
        .values(attended=attended)
        .returning(Booking.person_id)
    )
    if result.one_or_none() is None:
        raise NotFoundError(f"no booking found with person_id={person_id} and session_id={session_id}")

    await db.commit()
    logger.info("attendance_updated", person_id=person_id, session_id=session_id, attended=attended)


async def list_bookings(
    db: AsyncSession,
    identity: Identity,
    session_id: Optional[int] = None,
    person_id: Optional[int] = None,
    from_: Optional[str] = None,
    to: Optional[str] = None,
) -> list[BookingView]:
    """
    Joined booking view ordered by session time, then person name.
    Non-admins must ask for their own bookings explicitly.
    """
    if person_id is None or person_id != identity.uid:
        if not identity.is_admin:
            raise ForbiddenError("only admins can view bookings for other users")

    start = parse_opt_datetime(from_, "from")
    end = parse_opt_datetime(to, "to")

    query = (
        select(
            Booking.person_id,
            Person.name.label("person_name"),
            Person.email.label("person_email"),
            Booking.session_id,
            GymSession.datetime.label("session_datetime"),
            GymSession.duration_mins.label("session_duration_mins"),
            Location.id.label("location_id"),
            Location.name.label("location_name"),
            Location.address.label("location_address"),
            SessionType.id.label("session_type_id"),
            SessionType.name.label("session_type_name"),
            SessionType.requires_trainer.label("session_type_requires_trainer"),
            Booking.attended,
            Booking.credits_used,
        )
        .select_from(Booking)
        .join(Person, Booking.person_id == Person.id)
        .join(GymSession, Booking.session_id == GymSession.id)
        .join(SessionType, GymSession.session_type_id == SessionType.id)
        .outerjoin(Location, GymSession.location_id == Location.id)
    )

    if person_id is not None:
        query = query.where(Booking.person_id == person_id)
    if session_id is not None:
        query = query.where(Booking.session_id == session_id)
    if start is not None:
        query = query.where(GymSession.datetime >= start)
    if end is not None:
        query = query.where(GymSession.datetime <= end)

    query = query.order_by(GymSession.datetime.asc(), Person.name.asc())
    result = await db.execute(query)

    return [_to_view(row) for row in result.all()]


def _to_view(row) -> BookingView:
    location = None
    if row.location_id is not None:
        location = LocationView(id=row.location_id, name=row.location_name, address=row.location_address)
    return BookingView(
        person_id=row.person_id,
        person_name=row.person_name,
        person_email=row.person_email,
        session_id=row.session_id,
        session_datetime=row.session_datetime,
        session_duration_mins=row.session_duration_mins,
        session_location=location,
        session_type=SessionTypeView(
            id=row.session_type_id,
            name=row.session_type_name,
            requires_trainer=bool(row.session_type_requires_trainer),
        ),
        attended=bool(row.attended),
        credits_used=row.credits_used,
    )
