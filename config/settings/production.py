"""
Production settings for the Alcohol Explorer crawler.

PostgreSQL holds the explored records; Celery workers consume the
``explore`` queue from Redis. Reference data and the frontier snapshot live
in ``EXPLORER_STATE_DIR``, which must be a persistent volume.
"""

import os

from django.core.exceptions import ImproperlyConfigured

from .base import *

DEBUG = False

ALLOWED_HOSTS = [host for host in os.getenv("ALLOWED_HOSTS", "").split(",") if host]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "explorer"),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", "5432"),
        "CONN_MAX_AGE": 60,
    }
}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["explorer"]["level"] = "INFO"

if not EXPLORER_WEBSITE_HOST:
    raise ImproperlyConfigured("WEBSITE_EXPLORE_HOST must be set in production")
