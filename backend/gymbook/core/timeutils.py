"""
Timezone helpers for tenant-local calendar weeks and ISO-8601 filter input.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional

import pytz
from pydantic import TypeAdapter, ValidationError

from gymbook.core.exceptions import UnprocessableInputError

_datetime_adapter = TypeAdapter(datetime)


def get_tenant_timezone(tz_name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(tz_name)


def week_bounds(moment: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """
    Return the [start, end) of the calendar week containing `moment`.

    The week starts at local midnight of the Monday on or before the local
    date of `moment`; the end is exactly seven days later. Both bounds are
    returned in UTC.
    """
    tz = get_tenant_timezone(tz_name)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local_date = moment.astimezone(tz).date()
    monday = local_date - timedelta(days=local_date.weekday())
    week_start = tz.localize(datetime.combine(monday, time.min))
    week_start_utc = week_start.astimezone(timezone.utc)
    return week_start_utc, week_start_utc + timedelta(days=7)


def parse_opt_datetime(value: Optional[str], field: str = "date") -> Optional[datetime]:
    """Parse an optional ISO-8601 timestamp. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        raise UnprocessableInputError(f"invalid {field}: expected an ISO-8601 timestamp, got {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
