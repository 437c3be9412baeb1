"""
Week Layout Service.
Places calendar events into the day columns of a week view using slot metrics.
"""
import logging
from datetime import datetime, time
from typing import Dict, List, Optional

from . import dates
from .day_slicer import DaySlicer
from .slot_metrics import SlotMetrics, SlotMetricsCache
from .week import WeekNavigator


logger = logging.getLogger(__name__)


class WeekLayoutService:
    """
    Lays out one week of events.

    Each visible day gets its own slot grid from ``day_start`` to ``day_end``.
    Grids are shared through a SlotMetricsCache, so repeated layouts of the
    same week reuse the same SlotMetrics instances.
    """

    def __init__(self, cache: Optional[SlotMetricsCache] = None):
        self.cache = cache if cache is not None else SlotMetricsCache()

    @staticmethod
    def _minutes(value: time) -> int:
        return value.hour * 60 + value.minute

    def metrics_for_day(self, day: datetime, step: int, timeslots: int,
                        day_start: time, day_end: time) -> SlotMetrics:
        """Slot grid for one day column."""
        if day_end < day_start:
            raise ValueError("day_end must not precede day_start")
        grid_min = dates.from_wall_minutes(day, self._minutes(day_start))
        grid_max = dates.from_wall_minutes(day, self._minutes(day_end))
        return self.cache.get(grid_min, grid_max, step, timeslots)

    def layout_week(
        self,
        events: List[Dict],
        date: datetime,
        step: int = 30,
        timeslots: int = 2,
        day_start: time = time(0, 0),
        day_end: time = time(23, 59),
        first_day_of_week: int = 0,
        now: Optional[datetime] = None,
    ) -> Dict:
        """
        Compute the week view for ``date``.

        Args:
            events: Events with id, title, start_time, end_time and all_day
            date: Any datetime inside the week to show
            step: Slot duration in minutes
            timeslots: Slots per group
            day_start: First time of day shown in each column
            day_end: Last time of day shown in each column
            first_day_of_week: 0 = Sunday, 1 = Monday, ...
            now: Instant for the current-time indicator

        Returns:
            Dict containing:
                - title: Header label
                - start / end: First and last visible day
                - days: One entry per column with date, groups, all_day,
                  events (bands) and current_time_position
        """
        days = WeekNavigator.range(date, first_day_of_week)
        columns = DaySlicer.slice_events(events, days)

        day_layouts = []
        for day_index, column in enumerate(columns):
            metrics = self.metrics_for_day(column["date"], step, timeslots, day_start, day_end)

            all_day = []
            bands = []
            for segment in column["segments"]:
                if segment.get("all_day"):
                    all_day.append(segment)
                    continue

                segment_start = segment["segment_start"]
                segment_end = segment["segment_end"]
                # Outside the visible hours of this column
                if segment_end < metrics.start or segment_start > metrics.end:
                    continue

                band = metrics.get_range(segment_start, segment_end)
                band.update({
                    "event": segment,
                    "continues_prior": metrics.starts_before_day(segment["start_time"]),
                    "continues_after": metrics.starts_after_day(segment["end_time"]),
                })
                bands.append(band)

            current_time_position = None
            if now is not None and metrics.start <= now <= metrics.end:
                current_time_position = metrics.get_current_time_position(now)

            day_layouts.append({
                "index": day_index,
                "date": column["date"],
                "grid_start": metrics.start,
                "grid_end": metrics.end,
                "slot_count": metrics.slot_count,
                "groups": metrics.groups,
                "all_day": all_day,
                "events": bands,
                "current_time_position": current_time_position,
            })

        logger.debug(
            "Laid out week of %s: %d events across %d days",
            days[0].date().isoformat(), len(events), len(days),
        )

        return {
            "title": WeekNavigator.title(date, first_day_of_week),
            "start": days[0],
            "end": days[-1],
            "days": day_layouts,
        }
