"""
API views for the time grid.
"""
import logging

from django.conf import settings
from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import CalendarEvent
from .serializers import (
    CalendarEventSerializer,
    EventRangeQuerySerializer,
    GridInputSerializer,
    GridMetricsSerializer,
    RangeQuerySerializer,
    SlotQuerySerializer,
    SlotRangeSerializer,
    WeekLayoutQuerySerializer,
    WeekLayoutSerializer,
)
from .services import dates
from .services.slot_metrics import SlotMetricsCache
from .services.week import WeekNavigator
from .services.week_layout import WeekLayoutService


logger = logging.getLogger(__name__)

# Grids are rebuilt only when (min, max, step, timeslots) change.
grid_cache = SlotMetricsCache(maxsize=settings.TIMEGRID["CACHE_SIZE"])
week_layout_service = WeekLayoutService(cache=grid_cache)


ERROR_RESPONSE = OpenApiResponse(
    response=OpenApiTypes.OBJECT,
    description="Validation error",
    examples=[
        OpenApiExample(
            "Invalid Geometry",
            value={"error": "Bounding rectangle has zero height"}
        )
    ]
)


def _invalid(serializer):
    logger.warning("Rejected %s: %s", serializer.__class__.__name__, serializer.errors)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _grid_for(data):
    return grid_cache.get(data["min"], data["max"], data["step"], data["timeslots"])


def _overlapping_events(start, end):
    return CalendarEvent.objects.filter(start_time__lte=end, end_time__gte=start)


class GridMetricsView(APIView):
    """Slot grid summary."""

    @extend_schema(
        request=GridInputSerializer,
        responses={200: GridMetricsSerializer, 400: ERROR_RESPONSE},
    )
    def post(self, request):
        """
        POST /api/grid/metrics

        Returns the slot boundaries and groups of the grid.
        """
        serializer = GridInputSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        try:
            metrics = _grid_for(serializer.validated_data)
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        data = GridMetricsSerializer(metrics).data
        now = timezone.now()
        data["currentTimePosition"] = (
            round(metrics.get_current_time_position(now), 4)
            if metrics.start <= now <= metrics.end else None
        )
        return Response(data)


class SlotLookupView(APIView):
    """Map a position, point or date to a slot."""

    @extend_schema(
        request=SlotQuerySerializer,
        responses={
            200: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Matching slot",
                examples=[
                    OpenApiExample(
                        "Slot",
                        value={
                            "slot": "2026-10-19T10:00:00-04:00",
                            "slotIndex": 20,
                            "nextSlot": "2026-10-19T10:30:00-04:00",
                        }
                    )
                ]
            ),
            400: ERROR_RESPONSE,
        },
    )
    def post(self, request):
        """
        POST /api/grid/slot

        Used while dragging: translates pointer positions into snapped times.
        """
        serializer = SlotQuerySerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        data = serializer.validated_data

        try:
            metrics = _grid_for(data)
            if "position" in data:
                slot = metrics.closest_slot_to_position(data["position"])
            elif "point" in data:
                slot = metrics.closest_slot_from_point(data["point"], data["bounds"])
            else:
                slot = metrics.closest_slot_from_date(data["date"], data["offset"])
            next_slot = metrics.next_slot(slot)
        except ValueError as e:
            logger.warning("Slot lookup failed: %s", e)
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "slot": slot.isoformat(),
            "slotIndex": metrics.slots.index(slot),
            "nextSlot": next_slot.isoformat(),
        })


class GridRangeView(APIView):
    """Map a time range to a band (plus continuation bands)."""

    @extend_schema(
        request=RangeQuerySerializer,
        responses={
            200: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Band and continuation bands",
                examples=[
                    OpenApiExample(
                        "Range",
                        value={
                            "range": {
                                "top": 42.7083,
                                "height": 6.25,
                                "start": 615,
                                "startDate": "2026-10-19T10:15:00-04:00",
                                "end": 705,
                                "endDate": "2026-10-19T11:45:00-04:00",
                            },
                            "continuations": None,
                        }
                    )
                ]
            ),
            400: ERROR_RESPONSE,
        },
    )
    def post(self, request):
        """
        POST /api/grid/range

        Returns the band for the range on the grid's day and, for ranges
        reaching into later days, one preview band per extra day.
        """
        serializer = RangeQuerySerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        data = serializer.validated_data

        try:
            metrics = _grid_for(data)
            band = metrics.get_range(data["start"], data["end"], data["ignore_min"], data["ignore_max"])
            continuations = metrics.get_ranges(data["start"], data["end"], data["ignore_min"], data["ignore_max"])
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "range": SlotRangeSerializer(band).data,
            "continuations": (
                SlotRangeSerializer(continuations, many=True).data
                if continuations is not None else None
            ),
        })


class EventListView(APIView):
    """List or create calendar events."""

    @extend_schema(
        parameters=[
            OpenApiParameter("start", OpenApiTypes.DATETIME, description="Only events ending after this instant"),
            OpenApiParameter("end", OpenApiTypes.DATETIME, description="Only events starting before this instant"),
            OpenApiParameter("timezone", OpenApiTypes.STR, description="IANA zone for naive datetimes"),
        ],
        responses={200: CalendarEventSerializer(many=True)},
    )
    def get(self, request):
        """
        GET /api/events
        """
        query = EventRangeQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return _invalid(query)

        events = CalendarEvent.objects.all()
        if "start" in query.validated_data:
            events = events.filter(end_time__gte=query.validated_data["start"])
        if "end" in query.validated_data:
            events = events.filter(start_time__lte=query.validated_data["end"])

        return Response(CalendarEventSerializer(events, many=True).data)

    @extend_schema(
        request=CalendarEventSerializer,
        responses={201: CalendarEventSerializer},
        examples=[
            OpenApiExample(
                "Create Event",
                value={
                    "title": "Planning",
                    "start_time": "2026-10-19T10:15:00-04:00",
                    "end_time": "2026-10-19T11:45:00-04:00",
                    "all_day": False,
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        """
        POST /api/events
        """
        serializer = CalendarEventSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)

        event = serializer.save()
        logger.info("Created event %s (%s)", event.id, event.title)
        return Response(CalendarEventSerializer(event).data, status=status.HTTP_201_CREATED)


class EventDetailView(APIView):
    """Get event details."""

    @extend_schema(
        responses={
            200: CalendarEventSerializer,
            404: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Event not found",
                examples=[
                    OpenApiExample(
                        "Not Found",
                        value={"error": "Event not found"}
                    )
                ]
            ),
        },
    )
    def get(self, request, event_id):
        """
        GET /api/events/{id}
        """
        try:
            event = CalendarEvent.objects.get(id=event_id)
        except CalendarEvent.DoesNotExist:
            return Response(
                {"error": "Event not found"},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(CalendarEventSerializer(event).data)


class WeekLayoutView(APIView):
    """Week view layout of stored events."""

    @extend_schema(
        parameters=[
            OpenApiParameter("date", OpenApiTypes.DATETIME, description="Any instant inside the week (defaults to now)"),
            OpenApiParameter("action", OpenApiTypes.STR, enum=WeekNavigator.ACTIONS),
            OpenApiParameter("step", OpenApiTypes.INT),
            OpenApiParameter("timeslots", OpenApiTypes.INT),
            OpenApiParameter("day_start", OpenApiTypes.TIME),
            OpenApiParameter("day_end", OpenApiTypes.TIME),
            OpenApiParameter("first_day_of_week", OpenApiTypes.INT),
            OpenApiParameter("timezone", OpenApiTypes.STR),
        ],
        responses={
            200: WeekLayoutSerializer,
            500: OpenApiResponse(
                response=OpenApiTypes.OBJECT,
                description="Server error",
                examples=[
                    OpenApiExample(
                        "Server Error",
                        value={"error": "Layout failed"}
                    )
                ]
            ),
        },
    )
    def get(self, request):
        """
        GET /api/week/layout

        1. Validate query parameters
        2. Apply the navigation action to the reference date
        3. Load events overlapping the week
        4. Lay out every day column with its slot grid
        """
        query = WeekLayoutQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return _invalid(query)

        data = query.validated_data
        tz = data["timezone"]
        now = dates.to_zone(timezone.now(), tz)
        date = WeekNavigator.navigate(data.get("date", now), data["action"], today=now)

        try:
            days = WeekNavigator.range(date, data["first_day_of_week"])
            week_end = dates.end_of(days[-1], "day")
            events = [event.as_layout_dict() for event in _overlapping_events(days[0], week_end)]

            layout = week_layout_service.layout_week(
                events,
                date,
                step=data["step"],
                timeslots=data["timeslots"],
                day_start=data["day_start"],
                day_end=data["day_end"],
                first_day_of_week=data["first_day_of_week"],
                now=now,
            )
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception("Week layout failed for %s", date.isoformat())
            return Response(
                {"error": str(e)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response(WeekLayoutSerializer(layout).data)


@extend_schema(
    operation_id="health_check",
    summary="Health Check",
    description="Basic health check endpoint",
    responses={
        200: OpenApiResponse(
            response=OpenApiTypes.OBJECT,
            description="Service health status",
            examples=[
                OpenApiExample(
                    "Healthy",
                    value={
                        "status": "healthy",
                        "service": "Time Grid Backend"
                    }
                )
            ]
        ),
    },
)
@api_view(["GET"])
def health_check(request):
    """
    GET /api/healthcheck

    Basic health check endpoint.
    """
    return Response({
        "status": "healthy",
        "service": "Time Grid Backend",
        "cachedGrids": len(grid_cache),
    })
