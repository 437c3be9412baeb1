"""
Admin configuration for timegrid app.
"""
from django.contrib import admin
from .models import CalendarEvent


@admin.register(CalendarEvent)
class CalendarEventAdmin(admin.ModelAdmin):
    list_display = ["title", "start_time", "end_time", "all_day", "created_at"]
    list_filter = ["all_day", "start_time"]
    search_fields = ["title", "description"]
