"""
Serializers for time grid API endpoints.
"""
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.utils import timezone
from drf_spectacular.utils import extend_schema_serializer
from rest_framework import serializers

from .models import CalendarEvent
from .services.week import WeekNavigator


def _timegrid_default(name):
    """Callable default reading settings.TIMEGRID at validation time."""
    return lambda: settings.TIMEGRID[name]


def resolve_timezone(name):
    """
    Resolve an IANA zone name.

    Empty values fall back to the active Django time zone.
    """
    if not name:
        return timezone.get_current_timezone()
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        raise serializers.ValidationError({"timezone": [f"Unknown timezone: {name}"]})


def _iso(value):
    return value.isoformat() if value is not None else None


class ZonedInputSerializer(serializers.Serializer):
    """
    Base for inputs carrying an optional ``timezone``.

    Naive datetimes are read as wall-clock times in that zone, aware ones are
    converted to it. ``validated_data["timezone"]`` holds the tzinfo.
    """

    timezone = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="IANA time zone name, e.g. 'America/New_York'. Defaults to the server zone.",
    )

    def to_internal_value(self, data):
        tz = resolve_timezone(data.get("timezone") if hasattr(data, "get") else None)
        with timezone.override(tz):
            attrs = super().to_internal_value(data)
        attrs["timezone"] = tz
        return attrs


@extend_schema_serializer(
    examples=[
        {
            "min": "2026-10-19T00:00:00",
            "max": "2026-10-19T23:59:00",
            "step": 30,
            "timeslots": 2,
            "timezone": "America/New_York",
        }
    ]
)
class GridInputSerializer(ZonedInputSerializer):
    """Serializer for the parameters defining a slot grid."""

    min = serializers.DateTimeField(help_text="First instant of the grid")
    max = serializers.DateTimeField(help_text="Last instant of the grid (inclusive)")
    step = serializers.IntegerField(
        min_value=1,
        max_value=1440,
        default=_timegrid_default("DEFAULT_STEP"),
        help_text="Slot duration in minutes",
    )
    timeslots = serializers.IntegerField(
        min_value=1,
        default=_timegrid_default("DEFAULT_TIMESLOTS"),
        help_text="Slots per group (gridline)",
    )

    def validate(self, attrs):
        if attrs["max"] < attrs["min"]:
            raise serializers.ValidationError({"max": ["Grid end must not precede grid start."]})
        return attrs


class PointSerializer(serializers.Serializer):
    x = serializers.FloatField(required=False, default=0.0)
    y = serializers.FloatField()


class BoundsSerializer(serializers.Serializer):
    top = serializers.FloatField()
    bottom = serializers.FloatField()
    left = serializers.FloatField(required=False)
    right = serializers.FloatField(required=False)


class SlotQuerySerializer(GridInputSerializer):
    """
    Serializer for slot lookups.

    Exactly one lookup is used: ``position``, ``point`` with ``bounds``,
    or ``date`` (with an optional ``offset`` in slots).
    """

    position = serializers.FloatField(required=False, help_text="Vertical fraction, 0.0 top to 1.0 bottom")
    point = PointSerializer(required=False)
    bounds = BoundsSerializer(required=False)
    date = serializers.DateTimeField(required=False)
    offset = serializers.IntegerField(required=False, default=0)

    def validate(self, attrs):
        attrs = super().validate(attrs)

        lookups = [
            "position" in attrs,
            "point" in attrs or "bounds" in attrs,
            "date" in attrs,
        ]
        if sum(lookups) != 1:
            raise serializers.ValidationError(
                "Provide exactly one of 'position', 'point' with 'bounds', or 'date'."
            )
        if ("point" in attrs) != ("bounds" in attrs):
            raise serializers.ValidationError("'point' and 'bounds' must be given together.")
        return attrs


class RangeQuerySerializer(GridInputSerializer):
    """Serializer for mapping a time range onto the grid."""

    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    ignore_min = serializers.BooleanField(required=False, default=False)
    ignore_max = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs["end"] < attrs["start"]:
            raise serializers.ValidationError({"end": ["Range end must not precede range start."]})
        return attrs


class WeekLayoutQuerySerializer(ZonedInputSerializer):
    """Serializer for week layout query parameters."""

    date = serializers.DateTimeField(required=False)
    action = serializers.ChoiceField(choices=WeekNavigator.ACTIONS, default=WeekNavigator.DATE)
    step = serializers.IntegerField(min_value=1, max_value=1440, default=_timegrid_default("DEFAULT_STEP"))
    timeslots = serializers.IntegerField(min_value=1, default=_timegrid_default("DEFAULT_TIMESLOTS"))
    day_start = serializers.TimeField(default=_timegrid_default("DAY_START"))
    day_end = serializers.TimeField(default=_timegrid_default("DAY_END"))
    first_day_of_week = serializers.IntegerField(
        min_value=0,
        max_value=6,
        default=_timegrid_default("FIRST_DAY_OF_WEEK"),
        help_text="0 = Sunday, 1 = Monday, ...",
    )

    def validate(self, attrs):
        if attrs["day_end"] < attrs["day_start"]:
            raise serializers.ValidationError({"day_end": ["Day end must not precede day start."]})
        return attrs


class EventRangeQuerySerializer(ZonedInputSerializer):
    """Optional window filter for event listings."""

    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)


class CalendarEventSerializer(serializers.ModelSerializer):
    """Serializer for stored calendar events."""

    class Meta:
        model = CalendarEvent
        fields = ["id", "title", "start_time", "end_time", "all_day", "description"]
        read_only_fields = ["id"]

    def validate(self, attrs):
        start_time = attrs.get("start_time", getattr(self.instance, "start_time", None))
        end_time = attrs.get("end_time", getattr(self.instance, "end_time", None))
        if start_time and end_time and end_time < start_time:
            raise serializers.ValidationError({"end_time": ["End time must not precede start time."]})
        return attrs

    def to_representation(self, instance):
        """Convert to API response format."""
        return {
            "id": instance.id,
            "title": instance.title,
            "startTime": instance.start_time.isoformat(),
            "endTime": instance.end_time.isoformat(),
            "allDay": instance.all_day,
            "description": instance.description,
        }


class SlotRangeSerializer(serializers.Serializer):
    """Serializer for a band returned by SlotMetrics.get_range / get_ranges."""

    top = serializers.FloatField()
    height = serializers.FloatField()
    start = serializers.IntegerField()
    startDate = serializers.DateTimeField()
    end = serializers.IntegerField()
    endDate = serializers.DateTimeField()
    xOffset = serializers.IntegerField(required=False)

    def to_representation(self, instance):
        """Convert to API response format."""
        data = {
            "top": round(instance["top"], 4),
            "height": round(instance["height"], 4),
            "start": instance["start"],
            "startDate": _iso(instance["start_date"]),
            "end": instance["end"],
            "endDate": _iso(instance["end_date"]),
        }
        if "x_offset" in instance:
            data["xOffset"] = instance["x_offset"]
        return data


class GridMetricsSerializer(serializers.Serializer):
    """Serializer for a SlotMetrics summary."""

    key = serializers.CharField()
    totalMinutes = serializers.IntegerField()
    groupCount = serializers.IntegerField()
    slotCount = serializers.IntegerField()
    slots = serializers.ListField(child=serializers.DateTimeField())
    groups = serializers.ListField(child=serializers.ListField(child=serializers.DateTimeField()))

    def to_representation(self, instance):
        """Convert to API response format."""
        return {
            "key": instance.key,
            "start": _iso(instance.start),
            "end": _iso(instance.end),
            "step": instance.step,
            "timeslots": instance.timeslots,
            "totalMinutes": instance.total_minutes,
            "groupCount": instance.group_count,
            "slotCount": instance.slot_count,
            "slots": [_iso(slot) for slot in instance.slots],
            "groups": [[_iso(slot) for slot in group] for group in instance.groups],
        }


class WeekLayoutSerializer(serializers.Serializer):
    """Serializer for the output of WeekLayoutService.layout_week."""

    title = serializers.CharField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    days = serializers.ListField(child=serializers.DictField())

    @staticmethod
    def _event(event):
        return {
            "id": event.get("id"),
            "title": event.get("title", ""),
            "startTime": _iso(event["start_time"]),
            "endTime": _iso(event["end_time"]),
            "allDay": bool(event.get("all_day")),
        }

    def to_representation(self, instance):
        """Convert to API response format."""
        days = []
        for day in instance["days"]:
            events = []
            for band in day["events"]:
                data = SlotRangeSerializer(band).data
                data.update({
                    "event": self._event(band["event"]),
                    "continuesPrior": band["continues_prior"],
                    "continuesAfter": band["continues_after"],
                })
                events.append(data)

            position = day["current_time_position"]
            days.append({
                "index": day["index"],
                "date": day["date"].date().isoformat(),
                "gridStart": _iso(day["grid_start"]),
                "gridEnd": _iso(day["grid_end"]),
                "slotCount": day["slot_count"],
                "gridlines": [_iso(group[0]) for group in day["groups"]],
                "allDay": [self._event(event) for event in day["all_day"]],
                "events": events,
                "currentTimePosition": round(position, 4) if position is not None else None,
            })

        return {
            "title": instance["title"],
            "start": instance["start"].date().isoformat(),
            "end": instance["end"].date().isoformat(),
            "days": days,
        }
