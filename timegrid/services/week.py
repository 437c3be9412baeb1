"""
Week navigation.
Computes the visible days of a week view and moves between weeks.
"""
from datetime import datetime
from typing import List, Optional

from django.utils import timezone

from . import dates


class WeekNavigator:
    """Range, navigation and title helpers for the week view."""

    PREV = "PREV"
    NEXT = "NEXT"
    TODAY = "TODAY"
    DATE = "DATE"

    ACTIONS = [PREV, NEXT, TODAY, DATE]

    @classmethod
    def range(cls, date: datetime, first_day_of_week: int = 0) -> List[datetime]:
        """
        Days shown by the week view containing ``date``.

        Args:
            date: Any datetime inside the week
            first_day_of_week: 0 = Sunday, 1 = Monday, ...

        Returns:
            Seven datetimes at the start of each day, in ``date``'s zone
        """
        start = dates.start_of(date, "week", first_day_of_week)
        end = dates.end_of(date, "week", first_day_of_week)
        return dates.date_range(start, end, "day")

    @classmethod
    def navigate(cls, date: datetime, action: str, today: Optional[datetime] = None) -> datetime:
        """
        Reference date after a navigation action.

        PREV and NEXT move one week, TODAY jumps to ``today`` (defaults to
        now in ``date``'s zone), any other action keeps ``date``.
        """
        if action == cls.PREV:
            return dates.add(date, -1, "week")
        if action == cls.NEXT:
            return dates.add(date, 1, "week")
        if action == cls.TODAY:
            if today is None:
                today = dates.to_zone(timezone.now(), date.tzinfo)
            return today
        return date

    @classmethod
    def title(cls, date: datetime, first_day_of_week: int = 0) -> str:
        """Header label such as "October 18 - 24, 2026"."""
        days = cls.range(date, first_day_of_week)
        first, last = days[0], days[-1]

        if first.year != last.year:
            return f"{first:%B} {first.day}, {first.year} - {last:%B} {last.day}, {last.year}"
        if first.month != last.month:
            return f"{first:%B} {first.day} - {last:%B} {last.day}, {last.year}"
        return f"{first:%B} {first.day} - {last.day}, {last.year}"
