"""
Read-only session lookups used by the booking engine.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.exceptions import NotFoundError
from gymbook.models.session import GymSession


@dataclass(frozen=True)
class SessionFacts:
    id: int
    datetime: datetime
    cost: int


async def get_session_date_and_cost(db: AsyncSession, session_id: int) -> SessionFacts:
    result = await db.execute(
        select(GymSession.id, GymSession.datetime, GymSession.cost).where(GymSession.id == session_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(f"no session with id {session_id}")
    return SessionFacts(id=row.id, datetime=row.datetime, cost=row.cost)


async def get_max_booking_count(
    db: AsyncSession,
    session_id: int,
    for_update: bool = False,
) -> Optional[int]:
    """
    Booking cap of a session, or None when unlimited.

    With `for_update` the session row is locked FOR NO KEY UPDATE until the
    transaction ends, which serializes capacity-limited admissions for it.
    """
    query = select(GymSession.max_booking_count).where(GymSession.id == session_id)
    if for_update:
        query = query.with_for_update(key_share=True)
    result = await db.execute(query)
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(f"no session with id {session_id}")
    return row.max_booking_count
