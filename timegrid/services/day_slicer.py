"""
Day Slicer.
Splits calendar events into the day columns they touch.
"""
from datetime import datetime
from typing import Dict, List

from . import dates


class DaySlicer:
    """Service for slicing events into per-day segments."""

    @classmethod
    def slice_events(cls, events: List[Dict], days: List[datetime]) -> List[Dict]:
        """
        Group events by visible day.

        Args:
            events: Events with start_time and end_time
            days: Day-start datetimes of the visible columns

        Returns:
            List with one dict per day:
                - date: Day start
                - segments: Events touching the day, each with
                  segment_start / segment_end clamped to the day
        """
        columns = []

        for day in days:
            day_start = dates.start_of(day, "day")
            day_end = dates.end_of(day, "day")
            segments = []

            for event in events:
                start_time = dates.to_zone(event["start_time"], day_start.tzinfo)
                end_time = dates.to_zone(event["end_time"], day_start.tzinfo)

                # Zero-length events still show up on their own day
                if start_time > day_end or end_time < day_start:
                    continue
                if end_time == day_start and start_time < day_start:
                    continue

                segment = event.copy()
                segment["segment_start"] = max(start_time, day_start)
                segment["segment_end"] = min(end_time, day_end)
                segments.append(segment)

            segments.sort(key=lambda s: (s["segment_start"], s["segment_end"]))
            columns.append({"date": day_start, "segments": segments})

        return columns
