# ed_core/triage/apps.py
from django.apps import AppConfig


class TriageConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ed_core.triage"
