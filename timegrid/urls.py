"""
URL configuration for timegrid app.
"""
from django.urls import path
from . import views

app_name = "timegrid"

urlpatterns = [
    path("grid/metrics", views.GridMetricsView.as_view(), name="grid-metrics"),
    path("grid/slot", views.SlotLookupView.as_view(), name="grid-slot"),
    path("grid/range", views.GridRangeView.as_view(), name="grid-range"),
    path("events", views.EventListView.as_view(), name="event-list"),
    path("events/<int:event_id>", views.EventDetailView.as_view(), name="event-detail"),
    path("week/layout", views.WeekLayoutView.as_view(), name="week-layout"),
    path("healthcheck", views.health_check, name="health-check"),
]
