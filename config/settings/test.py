# config/settings/test.py
from .base import *  # noqa

DEBUG = False
SECRET_KEY = "test-secret-key"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Deterministic thresholds regardless of the developer's .env
TRIAGE_REASSESSMENT_MINUTES = 30
ALERT_SCAN_PAGE_SIZE = 200
EVENT_CLAIM_BATCH_SIZE = 50
EVENT_LEASE_SECONDS = 60
QUEUE_MINUTES_PER_PATIENT = 15

LOGGING["loggers"]["ed_core"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["ed_core"]["propagate"] = True  # noqa: F405
