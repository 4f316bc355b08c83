"""
Timezone-aware calendar windows.

Pure functions that map an instant to the start/end of its local day or week
in an IANA timezone and return those boundaries as aware UTC datetimes.

Days are computed on the local calendar, so a day that contains a DST
transition is 23 or 25 hours long but still maps to exactly one date.
Weeks start on ``week_start_day`` (0 = Sunday ... 6 = Saturday).

Naive datetimes passed in are interpreted as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chorequest.core.database.base import ensure_utc, utc_now
from chorequest.modules.shared.exceptions import InvalidTimezoneError, ValidationError

END_OF_DAY = time(23, 59, 59, 999000)


def validate_timezone(timezone_name: str) -> ZoneInfo:
    """
    Resolve an IANA timezone name.

    Raises
    ------
    InvalidTimezoneError
        If the name is empty, not a string, or unknown to the tz database.
    """
    if not isinstance(timezone_name, str) or not timezone_name.strip():
        raise InvalidTimezoneError(timezone_name)
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(timezone_name) from exc


def is_valid_timezone(timezone_name: str) -> bool:
    try:
        validate_timezone(timezone_name)
    except InvalidTimezoneError:
        return False
    return True


def validate_week_start_day(week_start_day: int) -> int:
    if (
        isinstance(week_start_day, bool)
        or not isinstance(week_start_day, int)
        or not 0 <= week_start_day <= 6
    ):
        raise ValidationError(
            "week_start_day",
            f"week_start_day must be an integer between 0 and 6, got {week_start_day!r}",
        )
    return week_start_day


def to_timezone(instant: datetime, timezone_name: str) -> datetime:
    """Wall-clock view of ``instant`` in the given timezone."""
    zone = validate_timezone(timezone_name)
    return ensure_utc(instant).astimezone(zone)  # type: ignore[union-attr]


def now_in_timezone(timezone_name: str, now: Optional[datetime] = None) -> datetime:
    return to_timezone(now or utc_now(), timezone_name)


def _local_date(instant: datetime, zone: ZoneInfo) -> date:
    return ensure_utc(instant).astimezone(zone).date()  # type: ignore[union-attr]


def _local_to_utc(day: date, clock: time, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, clock, tzinfo=zone).astimezone(timezone.utc)


def _week_start_date(local_day: date, week_start_day: int) -> date:
    # Python's weekday() is Monday=0; shift so Sunday=0 like week_start_day
    sunday_based = (local_day.weekday() + 1) % 7
    return local_day - timedelta(days=(sunday_based - week_start_day) % 7)


def start_of_day_in_timezone(instant: datetime, timezone_name: str) -> datetime:
    """
    Local midnight of the instant's local date, as UTC.

    >>> start_of_day_in_timezone(datetime(2025, 1, 15, 12, tzinfo=timezone.utc), "America/Chicago")
    datetime.datetime(2025, 1, 15, 6, 0, tzinfo=datetime.timezone.utc)
    """
    zone = validate_timezone(timezone_name)
    return _local_to_utc(_local_date(instant, zone), time.min, zone)


def end_of_day_in_timezone(instant: datetime, timezone_name: str) -> datetime:
    """Local 23:59:59.999 of the instant's local date, as UTC."""
    zone = validate_timezone(timezone_name)
    return _local_to_utc(_local_date(instant, zone), END_OF_DAY, zone)


def start_of_week_in_timezone(
    instant: datetime, timezone_name: str, week_start_day: int = 0
) -> datetime:
    """Local midnight of the most recent ``week_start_day`` on or before the local date."""
    zone = validate_timezone(timezone_name)
    validate_week_start_day(week_start_day)
    start = _week_start_date(_local_date(instant, zone), week_start_day)
    return _local_to_utc(start, time.min, zone)


def end_of_week_in_timezone(
    instant: datetime, timezone_name: str, week_start_day: int = 0
) -> datetime:
    """Local 23:59:59.999 six days after the week start."""
    zone = validate_timezone(timezone_name)
    validate_week_start_day(week_start_day)
    start = _week_start_date(_local_date(instant, zone), week_start_day)
    return _local_to_utc(start + timedelta(days=6), END_OF_DAY, zone)


def is_same_day_in_timezone(first: datetime, second: datetime, timezone_name: str) -> bool:
    zone = validate_timezone(timezone_name)
    return _local_date(first, zone) == _local_date(second, zone)


def is_same_week_in_timezone(
    first: datetime, second: datetime, timezone_name: str, week_start_day: int = 0
) -> bool:
    return start_of_week_in_timezone(
        first, timezone_name, week_start_day
    ) == start_of_week_in_timezone(second, timezone_name, week_start_day)


def days_between_in_timezone(first: datetime, second: datetime, timezone_name: str) -> int:
    """
    Whole local calendar days between two instants, order-insensitive.

    Counted on local dates, so a 23-hour DST day still counts as one.
    """
    zone = validate_timezone(timezone_name)
    return abs((_local_date(second, zone) - _local_date(first, zone)).days)
