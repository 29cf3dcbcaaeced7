"""
Booking endpoints: create, cancel, mark attendance, list.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import Settings, get_settings
from gymbook.core.security import Identity, get_current_identity
from gymbook.db.session import get_db
from gymbook.schemas.booking import AttendanceUpdate, BookingCreate, BookingRecord, BookingView
from gymbook.services.booking_service import (
    create_booking,
    delete_booking,
    list_bookings,
    update_booking_attendance,
)
from gymbook.services.cache_service import invalidate_stats_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingRecord, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking: BookingCreate,
    response: Response,
    identity: Identity = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a session.

    Full-capacity sessions return 409, a missing membership 403, and a
    booking that credits could pay for without `credits_used` opt-in 402.
    """
    record = await create_booking(
        db,
        identity,
        booking.person_id,
        booking.session_id,
        booking.credits_used,
        tz_name=settings.TENANT_TIMEZONE,
    )
    response.headers["Location"] = (
        f"/api/v1/bookings?session_id={record.session_id}&person_id={record.person_id}"
    )
    return record


@router.delete("", response_model=BookingRecord)
async def delete_booking_endpoint(
    person_id: int,
    session_id: int,
    identity: Identity = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and refund any credits it used."""
    record = await delete_booking(db, identity, person_id, session_id)
    await invalidate_stats_cache(settings)
    return record


@router.put("", status_code=status.HTTP_204_NO_CONTENT)
async def update_booking_endpoint(
    person_id: int,
    session_id: int,
    booking_update: AttendanceUpdate,
    identity: Identity = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Mark attendance. Admin only."""
    await update_booking_attendance(db, identity, person_id, session_id, booking_update.attended)
    await invalidate_stats_cache(settings)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=list[BookingView])
async def list_bookings_endpoint(
    session_id: Optional[int] = None,
    person_id: Optional[int] = None,
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """List bookings. Non-admins must pass their own person_id."""
    return await list_bookings(db, identity, session_id=session_id, person_id=person_id, from_=from_, to=to)
