from django.core.exceptions import ValidationError
from django.db import models


class CalendarEvent(models.Model):
    """Stores an event shown in the time grid."""

    title = models.CharField(max_length=255)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    all_day = models.BooleanField(default=False, help_text="Shown in the all-day row instead of the time grid")
    description = models.TextField(blank=True)

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_time", "end_time"]
        indexes = [
            models.Index(fields=["start_time", "end_time"], name="timegrid_event_start_end_idx"),
        ]

    def __str__(self):
        return f"{self.title} - {self.start_time} to {self.end_time}"

    def clean(self):
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValidationError({"end_time": "End time must not precede start time."})

    def as_layout_dict(self):
        """Plain dict consumed by the layout services."""
        return {
            "id": self.id,
            "title": self.title,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "all_day": self.all_day,
            "description": self.description,
        }
