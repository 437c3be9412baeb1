"""
Slot Metrics Engine.
Divides a time window into uniform slots and converts between wall-clock
time, slot index and vertical position (percent) inside the time grid.
"""
import logging
import math
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from . import dates


logger = logging.getLogger(__name__)


def get_key(min_date: datetime, max_date: datetime, step: int, timeslots: int) -> str:
    """
    Identifier for a (range, step, grouping) combination.

    Both ends are truncated to the minute, so two requests for the same
    minute-level window share a key.
    """
    start_ms = int(dates.start_of(min_date, "minutes").timestamp() * 1000)
    end_ms = int(dates.start_of(max_date, "minutes").timestamp() * 1000)
    return f"{start_ms}:{end_ms}:{step}-{timeslots}"


class SlotMetrics:
    """
    Immutable slot grid for one time window.

    Attributes:
        start: First instant of the grid (inclusive)
        end: Last instant of the grid (inclusive), in the zone of ``start``
        step: Slot duration in minutes
        timeslots: Slots per group (e.g. 2 thirty-minute slots per hour)
        total_minutes: Wall-clock minutes covered by the window
        group_count: Number of groups
        slot_count: Number of slots, excluding the sentinel end boundary
        slots: ``slot_count + 1`` slot boundaries, the last one is the sentinel
        groups: ``group_count`` tuples of ``timeslots`` slot boundaries each
        key: Memoization key, see ``get_key``
    """

    def __init__(self, min_date: datetime, max_date: datetime, step: int, timeslots: int):
        if step <= 0:
            raise ValueError(f"step must be a positive number of minutes, got {step}")
        if timeslots < 1:
            raise ValueError(f"timeslots must be at least 1, got {timeslots}")

        start = min_date
        end = dates.to_zone(max_date, start.tzinfo)
        if end < start:
            raise ValueError("Grid end must not precede grid start")

        self.start = start
        self.end = end
        self.step = step
        self.timeslots = timeslots
        self.key = get_key(start, end, step, timeslots)

        # A same-day DST transition before ``start`` shifts the elapsed minutes
        # since midnight; the wall-clock measure keeps slot 0 aligned.
        day_start = dates.start_of(start, "day")
        self.minutes_from_midnight = dates.wall_clock_minutes_between(day_start, start)
        self.total_minutes = 1 + dates.wall_clock_minutes_between(start, end)

        self.group_count = math.ceil(self.total_minutes / (step * timeslots))
        self.slot_count = self.group_count * timeslots

        # The extra boundary allows selecting through the final slot.
        self.slots = tuple(
            dates.from_wall_minutes(start, self.minutes_from_midnight + index * step)
            for index in range(self.slot_count + 1)
        )
        self.groups = tuple(
            self.slots[group * timeslots:(group + 1) * timeslots]
            for group in range(self.group_count)
        )

        logger.debug(
            "Built slot metrics %s: %d minutes, %d groups, %d slots",
            self.key, self.total_minutes, self.group_count, self.slot_count,
        )

    def __repr__(self):
        return (
            f"SlotMetrics(start={self.start.isoformat()}, end={self.end.isoformat()}, "
            f"step={self.step}, timeslots={self.timeslots})"
        )

    @property
    def extent_minutes(self) -> int:
        """Minutes spanned by all rendered slots (100% of the grid height)."""
        return self.step * self.slot_count

    def update(self, min_date: datetime, max_date: datetime, step: int, timeslots: int) -> "SlotMetrics":
        """Return this instance when the key is unchanged, otherwise a new grid."""
        if get_key(min_date, max_date, step, timeslots) != self.key:
            return SlotMetrics(min_date, max_date, step, timeslots)
        return self

    def _local(self, date: datetime) -> datetime:
        return dates.to_zone(date, self.start.tzinfo)

    def _percent(self, minutes: float) -> float:
        return minutes / self.extent_minutes * 100

    def _clamp(self, date: datetime) -> datetime:
        return min(self.end, max(self.start, self._local(date)))

    def position_from_date(self, date: datetime) -> int:
        """Wall-clock minutes from grid start to ``date``, capped at ``total_minutes``."""
        return min(dates.wall_clock_minutes_between(self.start, self._local(date)), self.total_minutes)

    def closest_slot_to_position(self, fraction: float) -> datetime:
        """
        Slot at a vertical position.

        Args:
            fraction: Position in the grid, 0.0 at the top and 1.0 at the bottom.
                Values outside [0, 1] are clamped.

        Returns:
            Slot boundary whose index is ``floor(fraction * slot_count)``
        """
        if math.isnan(fraction):
            raise ValueError("Position fraction is not a number")
        index = min(self.slot_count - 1, max(0, math.floor(fraction * self.slot_count)))
        return self.slots[index]

    def closest_slot_from_point(self, point: Mapping[str, float], bounds: Mapping[str, float]) -> datetime:
        """
        Slot under a point inside the grid's bounding rectangle.

        Args:
            point: Mapping with a ``y`` coordinate
            bounds: Mapping with ``top`` and ``bottom`` coordinates of the grid

        Raises:
            ValueError: If the rectangle has no height
        """
        extent = abs(bounds["top"] - bounds["bottom"])
        if extent == 0:
            raise ValueError("Bounding rectangle has zero height")
        return self.closest_slot_to_position((point["y"] - bounds["top"]) / extent)

    def closest_slot_from_date(self, date: datetime, offset: int = 0) -> datetime:
        """
        Slot containing ``date``, moved by ``offset`` slots.

        Dates before the grid map to the first slot. Indexes past the end
        clamp to the sentinel boundary.
        """
        date = self._local(date)
        if dates.lt(date, self.start, "minutes"):
            return self.slots[0]

        minutes = dates.wall_clock_minutes_between(self.start, date)
        index = (minutes - minutes % self.step) // self.step + offset
        return self.slots[min(len(self.slots) - 1, max(0, index))]

    def next_slot(self, slot: datetime) -> datetime:
        """
        Slot boundary after ``slot``.

        The last boundary and values past it have no successor in the
        sequence, so one ``step`` is added to them instead.
        """
        try:
            index = self.slots.index(slot)
        except ValueError:
            following = self.closest_slot_from_date(slot, 1)
        else:
            following = self.slots[min(index + 1, len(self.slots) - 1)]

        # Past the sentinel boundary the lookup clamps back
        if following <= slot:
            following = dates.add(slot, self.step, "minutes")
        return following

    def date_is_in_group(self, date: datetime, group_index: int) -> bool:
        """True when ``date`` falls inside the group's span (minute granularity)."""
        date = self._local(date)
        group_start = self.groups[group_index][0]
        if group_index + 1 < len(self.groups):
            next_start = self.groups[group_index + 1][0]
            return dates.gte(date, group_start, "minutes") and dates.lt(date, next_start, "minutes")
        return dates.in_range(date, group_start, self.end, "minutes")

    def starts_before_day(self, date: datetime) -> bool:
        return dates.lt(self._local(date), self.start, "day")

    def starts_after_day(self, date: datetime) -> bool:
        return dates.gt(self._local(date), self.end, "day")

    def starts_before(self, date: datetime) -> bool:
        """Time of day of ``date`` is earlier than the grid start's time of day."""
        return dates.lt(dates.merge(self.start, date), self.start, "minutes")

    def starts_after(self, date: datetime) -> bool:
        """Time of day of ``date`` is later than the grid end's time of day."""
        return dates.gt(dates.merge(self.end, date), self.end, "minutes")

    def _top(self, start_minutes: int, end_minutes: int, range_end: datetime) -> float:
        # A block ending inside the final rendered slot, short of the grid end,
        # is drawn one step higher so it stays inside its column cell.
        rendered_in_column_cell = range_end <= dates.add(self.end, -self.step, "minutes")
        if end_minutes > self.step * (self.slot_count - 1) and rendered_in_column_cell:
            return self._percent(start_minutes - self.step)
        return self._percent(start_minutes)

    def get_range(
        self,
        range_start: datetime,
        range_end: datetime,
        ignore_min: bool = False,
        ignore_max: bool = False,
    ) -> Dict:
        """
        Vertical band occupied by a time range.

        Args:
            range_start: Start of the range
            range_end: End of the range
            ignore_min: Keep ``range_start`` even when it precedes the grid
            ignore_max: Keep ``range_end`` even when it follows the grid

        Returns:
            Dict containing:
                - top: Offset from the grid top in percent
                - height: Height in percent
                - start: Wall-clock minutes from grid start to the range start
                - start_date: Range start after clamping
                - end: Wall-clock minutes from grid start to the range end
                - end_date: Range end after clamping
        """
        range_start = self._local(range_start) if ignore_min else self._clamp(range_start)
        range_end = self._local(range_end) if ignore_max else self._clamp(range_end)

        start_minutes = self.position_from_date(range_start)
        end_minutes = self.position_from_date(range_end)
        top = self._top(start_minutes, end_minutes, range_end)

        return {
            "top": top,
            "height": self._percent(end_minutes) - top,
            "start": start_minutes,
            "start_date": range_start,
            "end": end_minutes,
            "end_date": range_end,
        }

    def get_ranges(
        self,
        range_start: datetime,
        range_end: datetime,
        ignore_min: bool = False,
        ignore_max: bool = False,
    ) -> Optional[List[Dict]]:
        """
        Continuation bands for a range spanning several days.

        The first day is left to ``get_range``. Every following day gets a
        band running from the top of the grid to the part of ``range_end``
        that falls on that day, tagged with ``x_offset = 100 * day_index``
        so it can be drawn in the matching day column.

        Returns:
            List of band dicts (see ``get_range``) with ``x_offset``, or None
            when the range stays on a single day
        """
        range_start = self._local(range_start) if ignore_min else self._clamp(range_start)
        range_end = self._local(range_end) if ignore_max else self._clamp(range_end)

        spanned_days = len(dates.date_range(range_start, range_end, "day"))
        if spanned_days <= 1:
            return None

        first_day = dates.start_of(range_start, "day")
        ranges = []
        for day_index in range(1, spanned_days):
            day_start = dates.add(first_day, day_index, "day")
            # Shift the end back onto the grid's day to measure that day's part.
            local_end = dates.add(range_end, -dates.diff(self.start, day_start, "day"), "day")
            end_minutes = self.position_from_date(local_end)
            top = self._top(0, end_minutes, local_end)

            ranges.append({
                "top": top,
                "height": self._percent(end_minutes) - top,
                "start": 0,
                "start_date": day_start,
                "end": end_minutes,
                "end_date": min(range_end, dates.end_of(day_start, "day")),
                "x_offset": 100 * day_index,
            })

        return ranges

    def get_current_time_position(self, instant: datetime) -> float:
        """Top offset in percent for a "now" indicator at ``instant``."""
        return self._percent(self.position_from_date(instant))


def build_slot_metrics(min_date: datetime, max_date: datetime, step: int, timeslots: int) -> SlotMetrics:
    """
    Build a slot grid.

    Args:
        min_date: First instant of the grid
        max_date: Last instant of the grid, not before ``min_date``
        step: Slot duration in minutes
        timeslots: Number of slots per group

    Returns:
        SlotMetrics instance
    """
    return SlotMetrics(min_date, max_date, step, timeslots)


class SlotMetricsCache:
    """
    Bounded, thread-safe cache of slot grids keyed by ``get_key``.

    Owned by the caller; the engine itself keeps no shared state.
    """

    def __init__(self, maxsize: int = 64):
        self.maxsize = maxsize
        self._entries: "OrderedDict[str, SlotMetrics]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def get(self, min_date: datetime, max_date: datetime, step: int, timeslots: int) -> SlotMetrics:
        """Return the cached grid for these parameters, building it on a miss."""
        key = get_key(min_date, max_date, step, timeslots)
        with self._lock:
            metrics = self._entries.get(key)
            if metrics is not None:
                self._entries.move_to_end(key)
                logger.debug("Slot metrics cache hit %s", key)
                return metrics

        metrics = build_slot_metrics(min_date, max_date, step, timeslots)

        with self._lock:
            self._entries[key] = metrics
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Slot metrics cache evicted %s", evicted)
        return metrics

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
