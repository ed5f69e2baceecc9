"""
Test settings for the Alcohol Explorer crawler.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

from .base import *

# Test mode
DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Test database - in-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Test Celery - run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Test logging - minimal output
LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["explorer"]["level"] = "WARNING"


# Disable Sentry in tests
SENTRY_DSN = ""

# Test explorer settings - no waiting, no network
EXPLORER_WEBSITE_HOST = "https://www.example.fr"
EXPLORER_PROVIDER_RETRY_DELAY = 0
EXPLORER_MIN_WAIT_SECONDS = 0
EXPLORER_MAX_WAIT_SECONDS = 0
