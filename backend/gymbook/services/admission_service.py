"""
Capacity-limited booking admission.

CONCURRENCY STRATEGY: Pessimistic session lock + conditional insert
===================================================================

Problem:
  Two members book the last place in a class simultaneously. Both count
  N-1 existing bookings, both insert, the class ends up with N+1.

Solution:
  Inside one transaction:

  1. SELECT ... FROM session WHERE id = :id FOR NO KEY UPDATE
     Concurrent admissions for the same session queue on this row lock.
     NO KEY UPDATE still lets booking inserts take their FK KEY SHARE lock,
     so unrelated writers referencing the session are not blocked.
  2. INSERT INTO booking (...)
     SELECT :person, :session, :credits FROM booking
     WHERE session_id = :session
     HAVING count(*) < :max
     ON CONFLICT DO NOTHING
     The aggregate always yields one row, so the insert happens exactly when
     the count is still below the cap.
  3. The caller commits. Zero inserted rows is a terminal outcome: either
     the session is full or the pair already exists.

  Sessions without a cap skip the lock and insert directly. Every value is
  bound as a parameter.
"""

import time
from typing import Optional

from sqlalchemy import BigInteger, Integer, func, literal, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.logging import get_logger
from gymbook.core.metrics import admission_latency, record_admission
from gymbook.models.booking import Booking
from gymbook.services.session_catalog import get_max_booking_count

logger = get_logger(__name__)

booking_table = Booking.__table__


async def insert_booking(
    db: AsyncSession,
    person_id: int,
    session_id: int,
    credits_used: int,
) -> bool:
    """Unconditional insert for uncapped sessions. False if the pair already exists."""
    result = await db.execute(
        insert(booking_table)
        .values(person_id=person_id, session_id=session_id, credits_used=credits_used)
        .on_conflict_do_nothing(index_elements=["person_id", "session_id"])
        .returning(booking_table.c.person_id)
    )
    return result.scalar_one_or_none() is not None


async def insert_booking_within_capacity(
    db: AsyncSession,
    person_id: int,
    session_id: int,
    credits_used: int,
) -> tuple[bool, Optional[int]]:
    """
    Lock the session row and insert only while bookings < max_booking_count.

    Returns (inserted, max_booking_count). The cap is re-read under the lock
    so an admin edit between lookup and insert is respected.
    """
    started = time.perf_counter()
    max_bookings = await get_max_booking_count(db, session_id, for_update=True)
    if max_bookings is None:
        return await insert_booking(db, person_id, session_id, credits_used), None

    candidate = (
        select(
            literal(person_id, BigInteger),
            literal(session_id, BigInteger),
            literal(credits_used, Integer),
        )
        .select_from(booking_table)
        .where(booking_table.c.session_id == session_id)
        .having(func.count() < max_bookings)
    )
    result = await db.execute(
        insert(booking_table)
        .from_select(["person_id", "session_id", "credits_used"], candidate)
        .on_conflict_do_nothing(index_elements=["person_id", "session_id"])
        .returning(booking_table.c.person_id)
    )
    inserted = result.scalar_one_or_none() is not None

    admission_latency.observe(time.perf_counter() - started)
    record_admission(inserted)
    logger.info(
        "capacity_admission",
        person_id=person_id,
        session_id=session_id,
        max_booking_count=max_bookings,
        admitted=inserted,
    )
    return inserted, max_bookings
