"""
Admin attendance statistics.
"""

from typing import Optional

from sqlalchemy import and_, func, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import Settings
from gymbook.core.logging import get_logger
from gymbook.core.security import Identity
from gymbook.core.timeutils import parse_opt_datetime
from gymbook.models.booking import Booking
from gymbook.models.person import Person
from gymbook.models.session import GymSession
from gymbook.schemas.stats import AttendanceStat
from gymbook.services import policy
from gymbook.services.cache_service import get_cached_stats, set_cached_stats, stats_cache_key

logger = get_logger(__name__)


async def get_attendance_stats(
    db: AsyncSession,
    identity: Identity,
    settings: Settings,
    from_: Optional[str] = None,
    to: Optional[str] = None,
    session_types: Optional[list[int]] = None,
) -> list[AttendanceStat]:
    """
    Attended bookings per person, most attended first, ties by name.

    Every person appears, with zero when nothing matches. An empty
    `session_types` means all session types.
    """
    policy.require_admin(identity)
    session_types = session_types or []

    start = parse_opt_datetime(from_, "from")
    end = parse_opt_datetime(to, "to")

    # Taken before the query so a concurrent invalidation orphans this result
    key = await stats_cache_key(
        settings,
        start.isoformat() if start else None,
        end.isoformat() if end else None,
        session_types,
    )
    if key is not None:
        cached = await get_cached_stats(settings, key)
        if cached is not None:
            return [AttendanceStat(**row) for row in cached]

    conditions = [Booking.person_id == Person.id, Booking.attended.is_(true())]
    if start is not None:
        conditions.append(GymSession.datetime >= start)
    if end is not None:
        conditions.append(GymSession.datetime <= end)
    if session_types:
        conditions.append(GymSession.session_type_id.in_(session_types))

    attended_count = (
        select(func.count())
        .select_from(Booking)
        .join(GymSession, Booking.session_id == GymSession.id)
        .where(and_(*conditions))
        .correlate(Person)
        .scalar_subquery()
        .label("attended_count")
    )
    query = (
        select(Person.id.label("person_id"), Person.name, Person.email, attended_count)
        .order_by(attended_count.desc(), Person.name.asc())
    )
    result = await db.execute(query)
    stats = [
        AttendanceStat(
            person_id=row.person_id,
            name=row.name,
            email=row.email,
            attended_count=row.attended_count,
        )
        for row in result.all()
    ]

    if key is not None:
        await set_cached_stats(settings, key, [s.model_dump() for s in stats])
    logger.info("attendance_stats_computed", rows=len(stats), session_types=session_types)
    return stats
