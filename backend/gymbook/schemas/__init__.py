from gymbook.schemas.booking import (
    AttendanceUpdate,
    BookingCreate,
    BookingRecord,
    BookingView,
    LocationView,
    SessionTypeView,
)
from gymbook.schemas.stats import AttendanceStat

__all__ = [
    "BookingCreate", "BookingRecord", "AttendanceUpdate",
    "BookingView", "LocationView", "SessionTypeView",
    "AttendanceStat",
]
