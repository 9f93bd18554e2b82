"""Business-hour arithmetic for escalation thresholds.

Sundays (in the configured timezone) do not count towards elapsed time
when exclusion is on.
"""
from datetime import datetime, time, timedelta, timezone, tzinfo

SUNDAY = 6


def _next_midnight(moment: datetime, tz: tzinfo) -> datetime:
    return datetime.combine(moment.date() + timedelta(days=1), time.min, tzinfo=tz)


def business_hours_between(
    start: datetime,
    end: datetime,
    tz: tzinfo,
    exclude_sundays: bool = True,
) -> float:
    """Hours elapsed from start to end, skipping Sundays when requested.

    Both datetimes must be timezone-aware. Returns 0.0 when end <= start.
    """
    if end <= start:
        return 0.0
    if not exclude_sundays:
        return (end - start).total_seconds() / 3600

    cursor = start.astimezone(tz)
    stop = end.astimezone(tz)
    seconds = 0.0
    while cursor < stop:
        segment_end = min(_next_midnight(cursor, tz), stop)
        if cursor.weekday() != SUNDAY:
            # Subtract in UTC so DST shifts inside the segment are counted correctly
            seconds += (
                segment_end.astimezone(timezone.utc) - cursor.astimezone(timezone.utc)
            ).total_seconds()
        cursor = segment_end
    return seconds / 3600


def add_business_hours(
    start: datetime,
    hours: float,
    tz: tzinfo,
    exclude_sundays: bool = True,
) -> datetime:
    """Earliest moment at which business_hours_between(start, moment) == hours."""
    if not exclude_sundays or hours <= 0:
        return start + timedelta(hours=max(hours, 0))

    remaining = timedelta(hours=hours)
    cursor = start.astimezone(tz)
    while True:
        if cursor.weekday() == SUNDAY:
            cursor = _next_midnight(cursor, tz)
            continue
        day_end = _next_midnight(cursor, tz)
        available = day_end.astimezone(timezone.utc) - cursor.astimezone(timezone.utc)
        if remaining <= available:
            result = cursor.astimezone(timezone.utc) + remaining
            return result.astimezone(start.tzinfo)
        remaining -= available
        cursor = day_end
