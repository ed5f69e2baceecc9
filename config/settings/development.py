"""
Development settings for the Alcohol Explorer crawler.

Uses a local SQLite database and verbose logging.
"""

from .base import *

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Development database - SQLite for simplicity
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Development Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# Development logging - verbose output
LOGGING["loggers"]["django"]["level"] = "INFO"
LOGGING["loggers"]["explorer"]["level"] = "DEBUG"

# Shorter politeness delay while debugging selectors
EXPLORER_MIN_WAIT_SECONDS = float(os.getenv("EXPLORER_MIN_WAIT_SECONDS", "10"))
EXPLORER_MAX_WAIT_SECONDS = float(os.getenv("EXPLORER_MAX_WAIT_SECONDS", "20"))
