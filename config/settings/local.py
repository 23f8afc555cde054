# config/settings/local.py
from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"  # noqa: F405

# Development
CORS_ALLOW_ALL_ORIGINS = True

LOGGING["loggers"]["ed_core"]["level"] = os.getenv("ED_CORE_LOG_LEVEL", "DEBUG")  # noqa: F405
