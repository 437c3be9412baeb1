"""
Date arithmetic helpers.
Calendar-unit math on wall-clock components, DST-aware for zoneinfo datetimes.
"""
import calendar
from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Optional


SECOND = timedelta(seconds=1)
MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)

UNITS = ("seconds", "minutes", "hours", "day", "week", "month")

# Units added as elapsed time rather than as wall-clock components
_ELAPSED_UNITS = {
    "seconds": SECOND,
    "minutes": MINUTE,
    "hours": HOUR,
}


def _check_unit(unit: str) -> None:
    if unit not in UNITS:
        raise ValueError(f"Unsupported date unit: {unit!r}")


def _wall(d: datetime) -> datetime:
    """Naive wall-clock view of a datetime."""
    return d.replace(tzinfo=None)


def _zoned(wall: datetime, tz: Optional[tzinfo], fold: int = 0) -> datetime:
    """
    Attach a zone to a wall-clock datetime.

    Non-existent wall times (spring-forward gap) move forward by the size of
    the gap. Ambiguous ones (fall-back overlap) resolve by ``fold``, the
    earlier instant by default.
    """
    if tz is None:
        return wall
    return wall.replace(tzinfo=tz, fold=fold).astimezone(timezone.utc).astimezone(tz)


def _utc(d: datetime) -> datetime:
    if d.tzinfo is None:
        return d
    return d.astimezone(timezone.utc)


def to_zone(d: datetime, tz: Optional[tzinfo]) -> datetime:
    """Express ``d`` in ``tz``. Naive values and a missing zone pass through."""
    if tz is None or d.tzinfo is None:
        return d
    return d.astimezone(tz)


def js_weekday(d: datetime) -> int:
    """Day of week with Sunday as 0."""
    return d.isoweekday() % 7


def utc_offset_minutes(d: datetime) -> int:
    """UTC offset of ``d`` in minutes (east positive, 0 for naive values)."""
    offset = d.utcoffset()
    if offset is None:
        return 0
    return int(offset.total_seconds() // 60)


def dst_offset(a: datetime, b: datetime) -> int:
    """Minutes the UTC offset changes between ``a`` and ``b``."""
    return utc_offset_minutes(b) - utc_offset_minutes(a)


def start_of(d: datetime, unit: str, first_day_of_week: int = 0) -> datetime:
    """
    Truncate a datetime to the start of a calendar unit.

    Args:
        d: Datetime to truncate
        unit: One of UNITS
        first_day_of_week: Week start for the "week" unit (0 = Sunday)

    Returns:
        Datetime in the same zone as ``d``
    """
    _check_unit(unit)
    wall = _wall(d)

    # Sub-day truncation stays inside the same UTC offset, so the repeated
    # fall-back hour keeps its fold.
    if unit == "seconds":
        return _zoned(wall.replace(microsecond=0), d.tzinfo, d.fold)
    if unit == "minutes":
        return _zoned(wall.replace(second=0, microsecond=0), d.tzinfo, d.fold)
    if unit == "hours":
        return _zoned(wall.replace(minute=0, second=0, microsecond=0), d.tzinfo, d.fold)

    wall = wall.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "week":
        wall -= DAY * ((js_weekday(wall) - first_day_of_week) % 7)
    elif unit == "month":
        wall = wall.replace(day=1)

    return _zoned(wall, d.tzinfo)


def end_of(d: datetime, unit: str, first_day_of_week: int = 0) -> datetime:
    """Last representable instant of the unit containing ``d``."""
    following = add(start_of(d, unit, first_day_of_week), 1, unit)
    return to_zone(_utc(following) - timedelta(microseconds=1), d.tzinfo)


def add(d: datetime, amount: int, unit: str) -> datetime:
    """
    Add calendar units to a datetime.

    Seconds, minutes and hours are added as elapsed time. Days, weeks and
    months move the wall-clock calendar fields and keep the time of day.
    """
    _check_unit(unit)

    if unit in _ELAPSED_UNITS:
        moved = _utc(d) + _ELAPSED_UNITS[unit] * amount
        return to_zone(moved, d.tzinfo)

    wall = _wall(d)
    if unit == "day":
        wall += DAY * amount
    elif unit == "week":
        wall += DAY * (7 * amount)
    else:
        month_index = wall.month - 1 + amount
        year = wall.year + month_index // 12
        month = month_index % 12 + 1
        day = min(wall.day, calendar.monthrange(year, month)[1])
        wall = wall.replace(year=year, month=month, day=day)

    return _zoned(wall, d.tzinfo)


def diff(a: datetime, b: datetime, unit: str = "minutes") -> int:
    """
    Signed difference ``b - a`` in whole units.

    Both values are truncated to the unit first. Sub-day units measure
    elapsed time, day and larger units count calendar boundaries.
    """
    _check_unit(unit)
    a0 = start_of(a, unit)
    b0 = start_of(b, unit)

    if unit in _ELAPSED_UNITS:
        return (_utc(b0) - _utc(a0)) // _ELAPSED_UNITS[unit]

    days = (b0.date() - a0.date()).days
    if unit == "day":
        return days
    if unit == "week":
        return days // 7
    return (b0.year - a0.year) * 12 + (b0.month - a0.month)


def wall_clock_minutes_between(a: datetime, b: datetime) -> int:
    """
    Minutes from ``a`` to ``b`` as read off a wall clock.

    The elapsed minute count is corrected by the UTC offset change between
    the two instants, so a spring-forward day still measures 1440 minutes
    from midnight to midnight.
    """
    b = to_zone(b, a.tzinfo)
    return diff(a, b, "minutes") + dst_offset(a, b)


def from_wall_minutes(reference: datetime, minutes: int) -> datetime:
    """
    Datetime ``minutes`` wall-clock minutes after midnight of ``reference``'s day.

    The value is built from the calendar day each time, never by stepping
    from a previous result.
    """
    midnight = datetime(reference.year, reference.month, reference.day)
    return _zoned(midnight + MINUTE * minutes, reference.tzinfo)


def merge(date_part: datetime, time_part: datetime) -> datetime:
    """Calendar day of ``date_part`` combined with the time of day of ``time_part``."""
    time_part = to_zone(time_part, date_part.tzinfo)
    wall = datetime.combine(_wall(date_part).date(), _wall(time_part).time())
    return _zoned(wall, date_part.tzinfo)


def date_range(start: datetime, end: datetime, unit: str = "day") -> List[datetime]:
    """Inclusive list of ``start``, ``start + 1 unit``, ... up to ``end``."""
    days = []
    current = start
    while lte(current, end, unit):
        days.append(current)
        current = add(current, 1, unit)
    return days


def _cmp_values(a: datetime, b: datetime, unit: Optional[str]):
    if unit is None:
        return a, b
    return start_of(a, unit), start_of(to_zone(b, a.tzinfo), unit)


def eq(a: datetime, b: datetime, unit: Optional[str] = None) -> bool:
    x, y = _cmp_values(a, b, unit)
    return x == y


def neq(a: datetime, b: datetime, unit: Optional[str] = None) -> bool:
    return not eq(a, b, unit)


def lt(a: datetime, b: datetime, unit: Optional[str] = None) -> bool:
    x, y = _cmp_values(a, b, unit)
    return x < y


def lte(a: datetime, b: datetime, unit: Optional[str] = None) -> bool:
    x, y = _cmp_values(a, b, unit)
    return x <= y


def gt(a: datetime, b: datetime, unit: Optional[str] = None) -> bool:
    x, y = _cmp_values(a, b, unit)
    return x > y


def gte(a: datetime, b: datetime, unit: Optional[str] = None) -> bool:
    x, y = _cmp_values(a, b, unit)
    return x >= y


def in_range(d: datetime, low: datetime, high: datetime, unit: str = "day") -> bool:
    """True when ``low <= d <= high`` at ``unit`` granularity."""
    return gte(d, low, unit) and lte(d, high, unit)
