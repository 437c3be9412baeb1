"""
Tests for timegrid app.
"""
import math
from datetime import datetime, time, timedelta
from unittest.mock import patch
from zoneinfo import ZoneInfo

from django.test import TestCase
from rest_framework.test import APIClient

from .models import CalendarEvent
from .services import dates
from .services.day_slicer import DaySlicer
from .services.slot_metrics import SlotMetrics, SlotMetricsCache, build_slot_metrics, get_key
from .services.week import WeekNavigator
from .services.week_layout import WeekLayoutService


NY = ZoneInfo("America/New_York")


def ny(*args):
    return datetime(*args, tzinfo=NY)


def day_grid(year=2026, month=10, day=19, step=30, timeslots=2):
    """Grid covering one day from 00:00 to 23:59."""
    return build_slot_metrics(ny(year, month, day, 0, 0), ny(year, month, day, 23, 59), step, timeslots)


class DateUtilityTests(TestCase):
    """Tests for calendar-unit date helpers."""

    def test_wall_clock_minutes_on_spring_forward_day(self):
        """Test that midnight to midnight measures 1440 minutes on a 23-hour day."""
        start = ny(2026, 3, 8, 0, 0)
        end = ny(2026, 3, 9, 0, 0)

        self.assertEqual(dates.diff(start, end, "minutes"), 23 * 60)
        self.assertEqual(dates.dst_offset(start, end), 60)
        self.assertEqual(dates.wall_clock_minutes_between(start, end), 1440)

    def test_wall_clock_minutes_on_fall_back_day(self):
        """Test that midnight to midnight measures 1440 minutes on a 25-hour day."""
        start = ny(2026, 11, 1, 0, 0)
        end = ny(2026, 11, 2, 0, 0)

        self.assertEqual(dates.diff(start, end, "minutes"), 25 * 60)
        self.assertEqual(dates.wall_clock_minutes_between(start, end), 1440)

    def test_wall_clock_minutes_naive(self):
        """Test that naive datetimes are measured as plain wall clock."""
        self.assertEqual(
            dates.wall_clock_minutes_between(datetime(2026, 1, 1, 8, 0), datetime(2026, 1, 1, 9, 30, 45)),
            90
        )

    def test_from_wall_minutes_skips_gap_forward(self):
        """Test that a non-existent wall time resolves after the gap."""
        result = dates.from_wall_minutes(ny(2026, 3, 8, 12, 0), 150)  # 02:30

        self.assertEqual((result.hour, result.minute), (3, 30))
        self.assertEqual(result.utcoffset(), timedelta(hours=-4))

    def test_from_wall_minutes_rolls_into_next_day(self):
        """Test that minutes past midnight roll into the following day."""
        result = dates.from_wall_minutes(ny(2026, 10, 19, 9, 0), 1440 + 30)
        self.assertEqual(result, ny(2026, 10, 20, 0, 30))

    def test_start_of_week(self):
        """Test week starts for Sunday and Monday based weeks."""
        wednesday = ny(2026, 10, 21, 15, 45)

        self.assertEqual(dates.start_of(wednesday, "week"), ny(2026, 10, 18))
        self.assertEqual(dates.start_of(wednesday, "week", 1), ny(2026, 10, 19))

    def test_start_and_end_of_day(self):
        """Test day boundaries."""
        d = ny(2026, 10, 19, 15, 45, 12)

        self.assertEqual(dates.start_of(d, "day"), ny(2026, 10, 19))
        self.assertEqual(dates.end_of(d, "day"), ny(2026, 10, 19, 23, 59, 59, 999999))
        self.assertEqual(dates.start_of(d, "minutes"), ny(2026, 10, 19, 15, 45))

    def test_add_day_keeps_wall_time_across_dst(self):
        """Test that adding a day keeps the time of day, adding hours does not."""
        saturday_noon = ny(2026, 3, 7, 12, 0)

        self.assertEqual(dates.add(saturday_noon, 1, "day"), ny(2026, 3, 8, 12, 0))
        self.assertEqual(dates.add(saturday_noon, 24, "hours"), ny(2026, 3, 8, 13, 0))

    def test_add_month_clamps_day(self):
        """Test that month arithmetic clamps to the last day of the month."""
        self.assertEqual(dates.add(ny(2026, 1, 31, 9, 0), 1, "month"), ny(2026, 2, 28, 9, 0))

    def test_unsupported_unit(self):
        """Test that unknown units are rejected."""
        with self.assertRaises(ValueError):
            dates.add(ny(2026, 1, 1), 1, "fortnight")

    def test_merge(self):
        """Test merging a day with another date's time of day."""
        merged = dates.merge(ny(2026, 10, 19), ny(2026, 10, 25, 14, 30))
        self.assertEqual(merged, ny(2026, 10, 19, 14, 30))

    def test_date_range_inclusive(self):
        """Test that day ranges include both ends."""
        days = dates.date_range(ny(2026, 10, 18), ny(2026, 10, 20, 10, 0), "day")

        self.assertEqual(len(days), 3)
        self.assertEqual(days[-1], ny(2026, 10, 20))

    def test_start_of_minute_in_repeated_hour(self):
        """Test that truncation keeps an instant in the second 01:xx hour."""
        second = datetime(2026, 11, 1, 6, 30, 20, tzinfo=ZoneInfo("UTC")).astimezone(NY)

        truncated = dates.start_of(second, "minutes")

        self.assertEqual(truncated, datetime(2026, 11, 1, 6, 30, tzinfo=ZoneInfo("UTC")))
        self.assertEqual(truncated.utcoffset(), timedelta(hours=-5))
        self.assertEqual(dates.start_of(second, "hours"), datetime(2026, 11, 1, 6, 0, tzinfo=ZoneInfo("UTC")))

    def test_wall_clock_minutes_in_repeated_hour(self):
        """Test that both 01:30 instants read 90 minutes after midnight."""
        midnight = ny(2026, 11, 1, 0, 0)
        first = ny(2026, 11, 1, 1, 30)
        second = datetime(2026, 11, 1, 6, 30, tzinfo=ZoneInfo("UTC")).astimezone(NY)

        self.assertEqual(dates.wall_clock_minutes_between(midnight, first), 90)
        self.assertEqual(dates.wall_clock_minutes_between(midnight, second), 90)

    def test_comparisons_with_units(self):
        """Test unit-granular comparisons."""
        a = ny(2026, 10, 19, 10, 0)
        b = ny(2026, 10, 19, 11, 0)

        self.assertFalse(dates.lt(a, b, "day"))
        self.assertTrue(dates.lt(a, b, "minutes"))
        self.assertTrue(dates.eq(a, b, "day"))
        self.assertTrue(dates.in_range(a, ny(2026, 10, 19), b, "minutes"))


class SlotMetricsTests(TestCase):
    """Tests for the slot metrics engine."""

    def test_full_day_grid(self):
        """Test grid sizes for a 00:00 to 23:59 day with 30-minute slots."""
        metrics = day_grid()

        self.assertEqual(metrics.total_minutes, 1440)
        self.assertEqual(metrics.group_count, 24)
        self.assertEqual(metrics.slot_count, 48)
        self.assertEqual(len(metrics.slots), 49)
        self.assertEqual(metrics.slots[0], ny(2026, 10, 19, 0, 0))
        # Sentinel boundary is the next midnight
        self.assertEqual(metrics.slots[48], ny(2026, 10, 20, 0, 0))

    def test_groups_partition_slots(self):
        """Test that groups are consecutive chunks of the slot sequence."""
        metrics = day_grid(timeslots=4, step=15)

        self.assertEqual(len(metrics.groups), metrics.group_count)
        for index, group in enumerate(metrics.groups):
            self.assertEqual(len(group), 4)
            self.assertEqual(list(group), list(metrics.slots[index * 4:(index + 1) * 4]))
        self.assertEqual(metrics.groups[10][0], ny(2026, 10, 19, 10, 0))

    def test_grid_just_covers_range(self):
        """Test that slots cover the range with less than one spare slot."""
        windows = [
            (ny(2026, 10, 19, 0, 0), ny(2026, 10, 19, 23, 59)),
            (ny(2026, 10, 19, 8, 0), ny(2026, 10, 19, 17, 0)),
            (ny(2026, 10, 19, 9, 10), ny(2026, 10, 19, 9, 55)),
        ]
        for start, end in windows:
            for step in (5, 15, 30, 60):
                metrics = build_slot_metrics(start, end, step, 1)
                self.assertGreaterEqual(metrics.slot_count * step, metrics.total_minutes)
                self.assertLess(metrics.slot_count * step - step, metrics.total_minutes)

    def test_grid_covers_range_in_whole_groups(self):
        """Test that grouped grids cover the range with less than one spare group."""
        start, end = ny(2026, 10, 19, 8, 0), ny(2026, 10, 19, 17, 0)
        for timeslots in (2, 3, 4, 6):
            metrics = build_slot_metrics(start, end, 15, timeslots)
            group_minutes = 15 * timeslots
            self.assertGreaterEqual(metrics.slot_count * 15, metrics.total_minutes)
            self.assertLess(metrics.slot_count * 15 - group_minutes, metrics.total_minutes)
            self.assertEqual(metrics.slot_count % timeslots, 0)

    def test_spring_forward_day_has_regular_slot_count(self):
        """Test that the missing hour does not shrink the grid."""
        regular = day_grid()
        dst_day = day_grid(2026, 3, 8)

        self.assertEqual(dst_day.total_minutes, 1440)
        self.assertEqual(dst_day.slot_count, regular.slot_count)
        # Slots are built from wall-clock minutes, so no drift after the gap
        self.assertEqual(dst_day.slots[20], ny(2026, 3, 8, 10, 0))
        self.assertEqual(dst_day.slots[48], ny(2026, 3, 9, 0, 0))

    def test_fall_back_day_has_regular_slot_count(self):
        """Test that the repeated hour does not grow the grid."""
        dst_day = day_grid(2026, 11, 1)

        self.assertEqual(dst_day.total_minutes, 1440)
        self.assertEqual(dst_day.slot_count, 48)
        self.assertEqual(dst_day.slots[20], ny(2026, 11, 1, 10, 0))
        self.assertEqual(dst_day.slots[20].utcoffset(), timedelta(hours=-5))

    def test_positions_on_spring_forward_day(self):
        """Test that positions after the gap follow the wall clock."""
        metrics = day_grid(2026, 3, 8)

        band = metrics.get_range(ny(2026, 3, 8, 10, 0), ny(2026, 3, 8, 11, 0))
        self.assertEqual(band["start"], 600)
        self.assertAlmostEqual(band["top"], 600 / 1440 * 100)
        self.assertAlmostEqual(band["height"], 60 / 1440 * 100)

        self.assertEqual(metrics.closest_slot_from_date(ny(2026, 3, 8, 10, 10)), metrics.slots[20])
        self.assertAlmostEqual(metrics.get_current_time_position(ny(2026, 3, 8, 12, 0)), 50.0)

    def test_positions_in_repeated_hour(self):
        """Test that the second 01:xx hour of a fall-back day maps like the first."""
        metrics = day_grid(2026, 11, 1)
        first = ny(2026, 11, 1, 1, 30)
        second = datetime(2026, 11, 1, 6, 30, tzinfo=ZoneInfo("UTC")).astimezone(NY)

        self.assertEqual(metrics.position_from_date(first), 90)
        self.assertEqual(metrics.position_from_date(second), 90)
        self.assertEqual(metrics.closest_slot_from_date(second), metrics.slots[3])

        band = metrics.get_range(first, second)
        self.assertGreaterEqual(band["height"], 0)
        self.assertAlmostEqual(band["top"], 90 / 1440 * 100)

    def test_positions_after_fall_back(self):
        """Test that positions after the repeated hour follow the wall clock."""
        metrics = day_grid(2026, 11, 1)

        self.assertEqual(metrics.position_from_date(ny(2026, 11, 1, 10, 0)), 600)
        self.assertEqual(metrics.closest_slot_from_date(ny(2026, 11, 1, 10, 10)), metrics.slots[20])

    def test_start_after_transition_aligns_to_wall_clock(self):
        """Test that a grid starting after a same-day transition starts on time."""
        metrics = build_slot_metrics(ny(2026, 3, 8, 8, 0), ny(2026, 3, 8, 17, 0), 30, 2)

        self.assertEqual(metrics.minutes_from_midnight, 480)
        self.assertEqual(metrics.slots[0], ny(2026, 3, 8, 8, 0))
        self.assertEqual(metrics.slots[2], ny(2026, 3, 8, 9, 0))

    def test_invalid_parameters(self):
        """Test that malformed grids are rejected."""
        with self.assertRaises(ValueError):
            build_slot_metrics(ny(2026, 10, 19, 12), ny(2026, 10, 19, 11), 30, 2)
        with self.assertRaises(ValueError):
            build_slot_metrics(ny(2026, 10, 19, 0), ny(2026, 10, 19, 23), 0, 2)
        with self.assertRaises(ValueError):
            build_slot_metrics(ny(2026, 10, 19, 0), ny(2026, 10, 19, 23), 30, 0)

    def test_closest_slot_to_position(self):
        """Test fraction to slot conversion, including clamping."""
        metrics = day_grid()

        self.assertEqual(metrics.closest_slot_to_position(0), ny(2026, 10, 19, 0, 0))
        self.assertEqual(metrics.closest_slot_to_position(0.5), ny(2026, 10, 19, 12, 0))
        self.assertEqual(metrics.closest_slot_to_position(1.0), ny(2026, 10, 19, 23, 30))
        self.assertEqual(metrics.closest_slot_to_position(-0.3), ny(2026, 10, 19, 0, 0))
        self.assertEqual(metrics.closest_slot_to_position(1.7), ny(2026, 10, 19, 23, 30))

    def test_closest_slot_to_position_rejects_nan(self):
        """Test that a NaN position is rejected."""
        with self.assertRaises(ValueError):
            day_grid().closest_slot_to_position(math.nan)

    def test_closest_slot_from_point(self):
        """Test point inside a bounding rectangle to slot conversion."""
        metrics = day_grid()
        bounds = {"top": 100, "bottom": 580}

        self.assertEqual(metrics.closest_slot_from_point({"x": 10, "y": 340}, bounds), ny(2026, 10, 19, 12, 0))
        self.assertEqual(metrics.closest_slot_from_point({"y": 40}, bounds), ny(2026, 10, 19, 0, 0))

    def test_closest_slot_from_point_zero_height(self):
        """Test that a degenerate rectangle is rejected."""
        with self.assertRaises(ValueError):
            day_grid().closest_slot_from_point({"y": 10}, {"top": 100, "bottom": 100})

    def test_closest_slot_from_date(self):
        """Test date to slot conversion with offsets and clamping."""
        metrics = day_grid()

        self.assertEqual(metrics.closest_slot_from_date(ny(2026, 10, 19, 10, 17)), ny(2026, 10, 19, 10, 0))
        self.assertEqual(metrics.closest_slot_from_date(ny(2026, 10, 19, 10, 17), 1), ny(2026, 10, 19, 10, 30))
        self.assertEqual(metrics.closest_slot_from_date(ny(2026, 10, 18, 23, 0)), metrics.slots[0])
        # Offsets past the end stop at the sentinel boundary
        self.assertEqual(metrics.closest_slot_from_date(ny(2026, 10, 19, 22, 0), 100), metrics.slots[-1])

    def test_closest_slot_from_date_other_zone(self):
        """Test that dates in another zone are read on the grid's wall clock."""
        metrics = day_grid()
        utc_date = datetime(2026, 10, 19, 14, 20, tzinfo=ZoneInfo("UTC"))  # 10:20 in New York

        self.assertEqual(metrics.closest_slot_from_date(utc_date), ny(2026, 10, 19, 10, 0))

    def test_position_round_trip(self):
        """Test that slot lookups by position and by date agree."""
        metrics = day_grid(step=15, timeslots=4)

        for tenth in range(11):
            fraction = tenth / 10
            slot = metrics.closest_slot_to_position(fraction)
            implied = dates.add(metrics.start, int(fraction * metrics.total_minutes), "minutes")

            self.assertEqual(metrics.closest_slot_from_date(slot), slot)
            self.assertLessEqual(abs((implied - slot).total_seconds()), metrics.step * 60)

    def test_next_slot(self):
        """Test slot succession, including past the last boundary."""
        metrics = day_grid()

        self.assertEqual(metrics.next_slot(metrics.slots[3]), metrics.slots[4])
        self.assertEqual(metrics.next_slot(metrics.slots[-1]), ny(2026, 10, 20, 0, 30))
        self.assertEqual(metrics.next_slot(ny(2026, 10, 19, 10, 10)), ny(2026, 10, 19, 10, 30))

    def test_next_slot_past_grid_end(self):
        """Test that values past the last boundary still move forward."""
        metrics = day_grid()

        self.assertEqual(metrics.next_slot(ny(2026, 10, 20, 0, 10)), ny(2026, 10, 20, 0, 40))

    def test_date_is_in_group(self):
        """Test group membership at group boundaries."""
        metrics = day_grid()

        self.assertTrue(metrics.date_is_in_group(ny(2026, 10, 19, 10, 0), 10))
        self.assertTrue(metrics.date_is_in_group(ny(2026, 10, 19, 10, 59), 10))
        self.assertFalse(metrics.date_is_in_group(ny(2026, 10, 19, 11, 0), 10))
        self.assertFalse(metrics.date_is_in_group(ny(2026, 10, 19, 9, 59), 10))
        # Last group runs through the grid end
        self.assertTrue(metrics.date_is_in_group(ny(2026, 10, 19, 23, 59), 23))

    def test_day_boundary_checks(self):
        """Test calendar-day checks against grid start and end."""
        metrics = day_grid()

        self.assertTrue(metrics.starts_before_day(ny(2026, 10, 18, 23, 0)))
        self.assertFalse(metrics.starts_before_day(ny(2026, 10, 19, 0, 0)))
        self.assertTrue(metrics.starts_after_day(ny(2026, 10, 20, 0, 0)))
        self.assertFalse(metrics.starts_after_day(ny(2026, 10, 19, 23, 59)))

    def test_time_of_day_checks(self):
        """Test that starts_before/after compare time of day only."""
        metrics = build_slot_metrics(ny(2026, 10, 19, 8, 0), ny(2026, 10, 19, 17, 0), 30, 2)

        self.assertTrue(metrics.starts_before(ny(2026, 10, 25, 7, 0)))
        self.assertFalse(metrics.starts_before(ny(2026, 10, 12, 9, 0)))
        self.assertTrue(metrics.starts_after(ny(2026, 10, 25, 18, 0)))
        self.assertFalse(metrics.starts_after(ny(2026, 10, 12, 16, 0)))

    def test_get_range(self):
        """Test band computation for a 10:15 to 11:45 event."""
        metrics = day_grid()
        band = metrics.get_range(ny(2026, 10, 19, 10, 15), ny(2026, 10, 19, 11, 45))

        self.assertAlmostEqual(band["top"], 615 / 1440 * 100)
        self.assertAlmostEqual(band["height"], 6.25)
        self.assertEqual(band["start"], 615)
        self.assertEqual(band["end"], 705)
        self.assertEqual(band["start_date"], ny(2026, 10, 19, 10, 15))
        self.assertEqual(band["end_date"], ny(2026, 10, 19, 11, 45))

    def test_get_range_zero_duration_at_start(self):
        """Test that a point at the grid start has no height."""
        metrics = day_grid()
        band = metrics.get_range(metrics.start, metrics.start)

        self.assertEqual(band["top"], 0)
        self.assertEqual(band["height"], 0)

    def test_get_range_clamps_to_grid(self):
        """Test that ranges are clamped unless told otherwise."""
        metrics = build_slot_metrics(ny(2026, 10, 19, 8, 0), ny(2026, 10, 19, 17, 0), 30, 2)
        self.assertEqual(metrics.slot_count * metrics.step, 600)

        band = metrics.get_range(ny(2026, 10, 19, 6, 0), ny(2026, 10, 19, 9, 0))
        self.assertEqual(band["start_date"], metrics.start)
        self.assertAlmostEqual(band["top"], 0)
        self.assertAlmostEqual(band["height"], 10)

        unclamped = metrics.get_range(ny(2026, 10, 19, 6, 0), ny(2026, 10, 19, 9, 0), ignore_min=True)
        self.assertEqual(unclamped["start"], -120)
        self.assertAlmostEqual(unclamped["top"], -20)
        self.assertAlmostEqual(unclamped["height"], 30)

    def test_get_ranges_multi_day(self):
        """Test continuation bands for an event spanning three days."""
        metrics = day_grid()
        ranges = metrics.get_ranges(ny(2026, 10, 19, 10, 0), ny(2026, 10, 21, 14, 0), ignore_max=True)

        self.assertEqual(len(ranges), 2)
        self.assertEqual([r["x_offset"] for r in ranges], [100, 200])

        # Whole middle day
        self.assertAlmostEqual(ranges[0]["top"], 0)
        self.assertAlmostEqual(ranges[0]["height"], 100)
        self.assertEqual(ranges[0]["start_date"], ny(2026, 10, 20))

        # Last day runs until 14:00
        self.assertAlmostEqual(ranges[1]["top"], 0)
        self.assertAlmostEqual(ranges[1]["height"], 840 / 1440 * 100)
        self.assertEqual(ranges[1]["end"], 840)
        self.assertEqual(ranges[1]["end_date"], ny(2026, 10, 21, 14, 0))

    def test_get_ranges_single_day(self):
        """Test that single-day ranges have no continuation bands."""
        metrics = day_grid()

        self.assertIsNone(metrics.get_ranges(ny(2026, 10, 19, 10, 0), ny(2026, 10, 19, 11, 0)))
        # Clamped to the grid's own day
        self.assertIsNone(metrics.get_ranges(ny(2026, 10, 19, 10, 0), ny(2026, 10, 21, 14, 0)))

    def test_current_time_position(self):
        """Test the now-indicator offset."""
        metrics = day_grid()

        self.assertAlmostEqual(metrics.get_current_time_position(ny(2026, 10, 19, 12, 0)), 50.0)
        self.assertAlmostEqual(metrics.get_current_time_position(metrics.start), 0.0)

    def test_update_reuses_instance(self):
        """Test update returns the same grid for the same minute-level key."""
        metrics = day_grid()

        same = metrics.update(ny(2026, 10, 19, 0, 0, 30), ny(2026, 10, 19, 23, 59, 59), 30, 2)
        self.assertIs(same, metrics)

        rebuilt = metrics.update(ny(2026, 10, 19, 0, 0), ny(2026, 10, 19, 23, 59), 15, 2)
        self.assertIsNot(rebuilt, metrics)
        self.assertIsInstance(rebuilt, SlotMetrics)
        self.assertEqual(rebuilt.step, 15)
        self.assertEqual(rebuilt.slot_count, 96)

    def test_key_truncates_to_minutes(self):
        """Test that keys ignore seconds."""
        self.assertEqual(
            get_key(ny(2026, 10, 19, 0, 0, 10), ny(2026, 10, 19, 23, 59, 50), 30, 2),
            get_key(ny(2026, 10, 19, 0, 0), ny(2026, 10, 19, 23, 59), 30, 2),
        )
        self.assertNotEqual(
            get_key(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 2),
            get_key(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 3),
        )


class SlotMetricsCacheTests(TestCase):
    """Tests for the caller-owned grid cache."""

    def test_cache_hit_returns_same_instance(self):
        """Test that repeated lookups share one grid."""
        cache = SlotMetricsCache(maxsize=4)
        first = cache.get(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 2)
        second = cache.get(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 2)

        self.assertIs(first, second)
        self.assertEqual(len(cache), 1)

    def test_cache_evicts_least_recently_used(self):
        """Test the size bound."""
        cache = SlotMetricsCache(maxsize=2)
        monday = cache.get(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 2)
        cache.get(ny(2026, 10, 20), ny(2026, 10, 20, 23, 59), 30, 2)
        cache.get(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 2)
        cache.get(ny(2026, 10, 21), ny(2026, 10, 21, 23, 59), 30, 2)

        self.assertEqual(len(cache), 2)
        self.assertIs(cache.get(ny(2026, 10, 19), ny(2026, 10, 19, 23, 59), 30, 2), monday)

        cache.clear()
        self.assertEqual(len(cache), 0)


class WeekNavigatorTests(TestCase):
    """Tests for week range, navigation and title."""

    def test_range_sunday_start(self):
        """Test the seven days of a Sunday-based week."""
        days = WeekNavigator.range(ny(2026, 10, 21, 15, 0))

        self.assertEqual(len(days), 7)
        self.assertEqual(days[0], ny(2026, 10, 18))
        self.assertEqual(days[-1], ny(2026, 10, 24))

    def test_range_monday_start(self):
        """Test the seven days of a Monday-based week."""
        days = WeekNavigator.range(ny(2026, 10, 21, 15, 0), first_day_of_week=1)

        self.assertEqual(days[0], ny(2026, 10, 19))
        self.assertEqual(days[-1], ny(2026, 10, 25))

    def test_range_across_dst(self):
        """Test that every day of a DST week starts at local midnight."""
        days = WeekNavigator.range(ny(2026, 3, 10, 9, 0))

        self.assertEqual(len(days), 7)
        for day in days:
            self.assertEqual((day.hour, day.minute), (0, 0))

    def test_navigate(self):
        """Test navigation actions."""
        date = ny(2026, 10, 21, 15, 0)
        today = ny(2026, 10, 19, 8, 0)

        self.assertEqual(WeekNavigator.navigate(date, WeekNavigator.PREV), ny(2026, 10, 14, 15, 0))
        self.assertEqual(WeekNavigator.navigate(date, WeekNavigator.NEXT), ny(2026, 10, 28, 15, 0))
        self.assertEqual(WeekNavigator.navigate(date, WeekNavigator.TODAY, today=today), today)
        self.assertEqual(WeekNavigator.navigate(date, WeekNavigator.DATE), date)

    @patch("timegrid.services.week.timezone.now")
    def test_navigate_today_defaults_to_now(self, mock_now):
        """Test that TODAY falls back to the current instant in the date's zone."""
        mock_now.return_value = datetime(2026, 10, 19, 16, 0, tzinfo=ZoneInfo("UTC"))

        result = WeekNavigator.navigate(ny(2026, 12, 2), WeekNavigator.TODAY)

        self.assertEqual(result, ny(2026, 10, 19, 12, 0))
        self.assertEqual(result.tzinfo, NY)

    def test_title(self):
        """Test header labels within and across months and years."""
        self.assertEqual(WeekNavigator.title(ny(2026, 10, 21)), "October 18 - 24, 2026")
        self.assertEqual(WeekNavigator.title(ny(2026, 9, 30)), "September 27 - October 3, 2026")
        self.assertEqual(
            WeekNavigator.title(ny(2026, 12, 31)),
            "December 27, 2026 - January 2, 2027"
        )


class DaySlicerTests(TestCase):
    """Tests for the day slicer."""

    def setUp(self):
        self.days = WeekNavigator.range(ny(2026, 10, 21))

    def test_event_crossing_midnight(self):
        """Test that an overnight event shows up in both columns."""
        events = [{
            "id": 1,
            "title": "Overnight",
            "start_time": ny(2026, 10, 19, 22, 0),
            "end_time": ny(2026, 10, 20, 2, 0),
        }]

        columns = DaySlicer.slice_events(events, self.days)

        self.assertEqual(len(columns), 7)
        monday, tuesday = columns[1], columns[2]
        self.assertEqual(len(monday["segments"]), 1)
        self.assertEqual(len(tuesday["segments"]), 1)
        self.assertEqual(monday["segments"][0]["segment_end"], dates.end_of(ny(2026, 10, 19), "day"))
        self.assertEqual(tuesday["segments"][0]["segment_start"], ny(2026, 10, 20))

    def test_event_ending_at_midnight(self):
        """Test that an event ending exactly at midnight stays on its day."""
        events = [{
            "id": 1,
            "title": "Late",
            "start_time": ny(2026, 10, 19, 23, 0),
            "end_time": ny(2026, 10, 20, 0, 0),
        }]

        columns = DaySlicer.slice_events(events, self.days)

        self.assertEqual(len(columns[1]["segments"]), 1)
        self.assertEqual(len(columns[2]["segments"]), 0)

    def test_zero_length_event(self):
        """Test that a point-in-time event is kept."""
        events = [{
            "id": 1,
            "title": "Reminder",
            "start_time": ny(2026, 10, 21, 9, 0),
            "end_time": ny(2026, 10, 21, 9, 0),
        }]

        columns = DaySlicer.slice_events(events, self.days)

        self.assertEqual([len(c["segments"]) for c in columns], [0, 0, 0, 1, 0, 0, 0])


class WeekLayoutServiceTests(TestCase):
    """Tests for the week layout service."""

    def setUp(self):
        self.service = WeekLayoutService(SlotMetricsCache())
        self.events = [
            {
                "id": 1,
                "title": "Planning",
                "start_time": ny(2026, 10, 19, 10, 15),
                "end_time": ny(2026, 10, 19, 11, 45),
                "all_day": False,
            },
            {
                "id": 2,
                "title": "Night shift",
                "start_time": ny(2026, 10, 20, 22, 0),
                "end_time": ny(2026, 10, 21, 2, 0),
                "all_day": False,
            },
            {
                "id": 3,
                "title": "Holiday",
                "start_time": ny(2026, 10, 23),
                "end_time": ny(2026, 10, 23, 23, 59),
                "all_day": True,
            },
        ]

    def test_layout_week(self):
        """Test bands, continuation flags and all-day events."""
        layout = self.service.layout_week(self.events, ny(2026, 10, 21), now=ny(2026, 10, 19, 12, 0))

        self.assertEqual(layout["title"], "October 18 - 24, 2026")
        self.assertEqual(len(layout["days"]), 7)

        monday = layout["days"][1]
        self.assertEqual(len(monday["events"]), 1)
        self.assertAlmostEqual(monday["events"][0]["top"], 615 / 1440 * 100)
        self.assertAlmostEqual(monday["events"][0]["height"], 6.25)
        self.assertAlmostEqual(monday["current_time_position"], 50.0)
        self.assertIsNone(layout["days"][0]["current_time_position"])

        tuesday_band = layout["days"][2]["events"][0]
        self.assertFalse(tuesday_band["continues_prior"])
        self.assertTrue(tuesday_band["continues_after"])

        wednesday_band = layout["days"][3]["events"][0]
        self.assertTrue(wednesday_band["continues_prior"])
        self.assertFalse(wednesday_band["continues_after"])
        self.assertAlmostEqual(wednesday_band["top"], 0)
        self.assertAlmostEqual(wednesday_band["height"], 120 / 1440 * 100)

        friday = layout["days"][5]
        self.assertEqual(len(friday["all_day"]), 1)
        self.assertEqual(friday["events"], [])

    def test_layout_reuses_cached_grids(self):
        """Test that laying out the same week twice builds each grid once."""
        first = self.service.layout_week(self.events, ny(2026, 10, 21))
        self.service.layout_week(self.events, ny(2026, 10, 20))

        self.assertEqual(len(self.service.cache), 7)
        self.assertEqual(len(first["days"][0]["groups"]), 24)

    def test_bands_use_day_segments(self):
        """Test that each column measures the part of the event on its own day."""
        original_get_range = SlotMetrics.get_range

        with patch.object(SlotMetrics, "get_range", autospec=True, side_effect=original_get_range) as mock_get_range:
            self.service.layout_week(self.events[1:2], ny(2026, 10, 21))

        calls = [call.args[1:] for call in mock_get_range.call_args_list]
        self.assertEqual(calls, [
            (ny(2026, 10, 20, 22, 0), dates.end_of(ny(2026, 10, 20), "day")),
            (ny(2026, 10, 21, 0, 0), ny(2026, 10, 21, 2, 0)),
        ])

    def test_visible_hours(self):
        """Test that events outside the visible hours are skipped."""
        events = [{
            "id": 4,
            "title": "Early run",
            "start_time": ny(2026, 10, 19, 6, 0),
            "end_time": ny(2026, 10, 19, 7, 0),
            "all_day": False,
        }]

        layout = self.service.layout_week(
            events + self.events[:1],
            ny(2026, 10, 19),
            day_start=time(8, 0),
            day_end=time(17, 0),
        )

        monday = layout["days"][1]
        self.assertEqual([band["event"]["id"] for band in monday["events"]], [1])
        self.assertEqual(monday["grid_start"], ny(2026, 10, 19, 8, 0))

    def test_invalid_visible_hours(self):
        """Test that inverted visible hours are rejected."""
        with self.assertRaises(ValueError):
            self.service.layout_week([], ny(2026, 10, 19), day_start=time(17, 0), day_end=time(8, 0))


class GridApiTests(TestCase):
    """Tests for grid endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.grid = {
            "min": "2026-10-19T00:00:00",
            "max": "2026-10-19T23:59:00",
            "step": 30,
            "timeslots": 2,
            "timezone": "America/New_York",
        }

    def test_metrics(self):
        """Test the grid summary endpoint."""
        response = self.client.post("/api/grid/metrics", self.grid, format="json")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["slotCount"], 48)
        self.assertEqual(data["groupCount"], 24)
        self.assertEqual(data["totalMinutes"], 1440)
        self.assertEqual(len(data["slots"]), 49)
        self.assertEqual(data["slots"][0], "2026-10-19T00:00:00-04:00")
        self.assertEqual(data["slots"][-1], "2026-10-20T00:00:00-04:00")
        self.assertEqual(len(data["groups"]), 24)

    def test_metrics_defaults(self):
        """Test that step and timeslots fall back to settings."""
        payload = {"min": self.grid["min"], "max": self.grid["max"], "timezone": "America/New_York"}
        response = self.client.post("/api/grid/metrics", payload, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["step"], 30)
        self.assertEqual(response.json()["timeslots"], 2)

    def test_metrics_unknown_timezone(self):
        """Test that unknown zones are rejected."""
        payload = dict(self.grid, timezone="Mars/Olympus_Mons")
        response = self.client.post("/api/grid/metrics", payload, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("timezone", response.json())

    def test_metrics_inverted_grid(self):
        """Test that max before min is rejected."""
        payload = dict(self.grid, min="2026-10-19T12:00:00", max="2026-10-19T08:00:00")
        response = self.client.post("/api/grid/metrics", payload, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("max", response.json())

    def test_slot_from_position(self):
        """Test slot lookup by position."""
        response = self.client.post("/api/grid/slot", dict(self.grid, position=0.5), format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            "slot": "2026-10-19T12:00:00-04:00",
            "slotIndex": 24,
            "nextSlot": "2026-10-19T12:30:00-04:00",
        })

    def test_slot_from_date(self):
        """Test slot lookup by date with an offset."""
        payload = dict(self.grid, date="2026-10-19T10:17:00", offset=1)
        response = self.client.post("/api/grid/slot", payload, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["slot"], "2026-10-19T10:30:00-04:00")

    def test_slot_from_point(self):
        """Test slot lookup by point within bounds."""
        payload = dict(self.grid, point={"x": 5, "y": 340}, bounds={"top": 100, "bottom": 580})
        response = self.client.post("/api/grid/slot", payload, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["slotIndex"], 24)

    def test_slot_from_point_zero_height(self):
        """Test that degenerate bounds produce an error response."""
        payload = dict(self.grid, point={"y": 340}, bounds={"top": 100, "bottom": 100})
        response = self.client.post("/api/grid/slot", payload, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Bounding rectangle has zero height")

    def test_slot_requires_one_lookup(self):
        """Test that ambiguous lookups are rejected."""
        payload = dict(self.grid, position=0.5, date="2026-10-19T10:17:00")
        response = self.client.post("/api/grid/slot", payload, format="json")

        self.assertEqual(response.status_code, 400)

    def test_range(self):
        """Test the range endpoint for a single-day event."""
        payload = dict(self.grid, start="2026-10-19T10:15:00", end="2026-10-19T11:45:00")
        response = self.client.post("/api/grid/range", payload, format="json")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertAlmostEqual(data["range"]["top"], 42.7083, places=4)
        self.assertAlmostEqual(data["range"]["height"], 6.25, places=4)
        self.assertEqual(data["range"]["startDate"], "2026-10-19T10:15:00-04:00")
        self.assertIsNone(data["continuations"])

    def test_range_multi_day_preview(self):
        """Test continuation bands for a dragged multi-day event."""
        payload = dict(
            self.grid,
            start="2026-10-19T10:00:00",
            end="2026-10-21T14:00:00",
            ignore_max=True,
        )
        response = self.client.post("/api/grid/range", payload, format="json")

        self.assertEqual(response.status_code, 200)
        continuations = response.json()["continuations"]
        self.assertEqual([c["xOffset"] for c in continuations], [100, 200])


class EventApiTests(TestCase):
    """Tests for event and week layout endpoints."""

    def setUp(self):
        self.client = APIClient()

    def test_create_and_fetch_event(self):
        """Test creating and retrieving an event."""
        response = self.client.post("/api/events", {
            "title": "Planning",
            "start_time": "2026-10-19T10:15:00-04:00",
            "end_time": "2026-10-19T11:45:00-04:00",
        }, format="json")

        self.assertEqual(response.status_code, 201)
        event_id = response.json()["id"]

        detail = self.client.get(f"/api/events/{event_id}")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["title"], "Planning")
        self.assertFalse(detail.json()["allDay"])

    def test_create_event_rejects_inverted_times(self):
        """Test that events ending before they start are rejected."""
        response = self.client.post("/api/events", {
            "title": "Backwards",
            "start_time": "2026-10-19T11:00:00-04:00",
            "end_time": "2026-10-19T10:00:00-04:00",
        }, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertIn("end_time", response.json())

    def test_event_not_found(self):
        """Test missing events."""
        response = self.client.get("/api/events/999")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Event not found"})

    def test_list_events_in_window(self):
        """Test filtering events by window."""
        CalendarEvent.objects.create(
            title="Monday",
            start_time=ny(2026, 10, 19, 9, 0),
            end_time=ny(2026, 10, 19, 10, 0),
        )
        CalendarEvent.objects.create(
            title="Next week",
            start_time=ny(2026, 10, 27, 9, 0),
            end_time=ny(2026, 10, 27, 10, 0),
        )

        response = self.client.get("/api/events", {
            "start": "2026-10-18T00:00:00",
            "end": "2026-10-24T23:59:00",
            "timezone": "America/New_York",
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual([e["title"] for e in response.json()], ["Monday"])

    def test_week_layout(self):
        """Test the week layout endpoint with navigation."""
        CalendarEvent.objects.create(
            title="Planning",
            start_time=ny(2026, 10, 19, 10, 15),
            end_time=ny(2026, 10, 19, 11, 45),
        )

        response = self.client.get("/api/week/layout", {
            "date": "2026-10-21T12:00:00",
            "timezone": "America/New_York",
        })

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["title"], "October 18 - 24, 2026")
        self.assertEqual(len(data["days"]), 7)
        self.assertEqual(data["days"][1]["date"], "2026-10-19")
        band = data["days"][1]["events"][0]
        self.assertAlmostEqual(band["top"], 42.7083, places=4)
        self.assertEqual(band["event"]["title"], "Planning")
        self.assertEqual(len(data["days"][0]["gridlines"]), 24)

        next_week = self.client.get("/api/week/layout", {
            "date": "2026-10-21T12:00:00",
            "action": "NEXT",
            "timezone": "America/New_York",
        })
        self.assertEqual(next_week.json()["title"], "October 25 - 31, 2026")
        self.assertEqual(next_week.json()["days"][1]["events"], [])

    def test_week_layout_invalid_hours(self):
        """Test that inverted visible hours are rejected."""
        response = self.client.get("/api/week/layout", {"day_start": "17:00", "day_end": "08:00"})

        self.assertEqual(response.status_code, 400)

    def test_health_check(self):
        """Test health check endpoint."""
        response = self.client.get("/api/healthcheck")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")
