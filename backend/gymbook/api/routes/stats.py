"""
Admin statistics endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import Settings, get_settings
from gymbook.core.security import Identity, get_current_identity
from gymbook.db.session import get_db
from gymbook.schemas.stats import AttendanceStat
from gymbook.services.stats_service import get_attendance_stats

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("/attendance", response_model=list[AttendanceStat])
async def attendance_stats_endpoint(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    session_type: list[int] = Query(default=[]),
    identity: Identity = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Attended bookings per person. Cached in Redis until attendance changes."""
    return await get_attendance_stats(db, identity, settings, from_=from_, to=to, session_types=session_type)
