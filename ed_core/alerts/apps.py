# ed_core/alerts/apps.py
from django.apps import AppConfig


class AlertsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ed_core.alerts"
