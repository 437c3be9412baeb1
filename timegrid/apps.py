from django.apps import AppConfig


class TimegridConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "timegrid"
