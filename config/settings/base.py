"""
Django base settings for the Alcohol Explorer crawler.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-explorer-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    # Local apps
    "explorer",
]


# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = "fr-fr"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

# Default primary key field type
# https://docs.djangoproject.com/en/4.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True

# Explorations run for hours; the politeness delay alone is several minutes per page
CELERY_TASK_TIME_LIMIT = None

CELERY_TASK_ROUTES = {
    "explorer.tasks.run_exploration": {"queue": "explore"},
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "explorer": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Completion providers (country guesses)

HUGGING_FACE_API_KEY = os.getenv("HUGGING_FACE_API_KEY", "")
MISTRAL_API_KEY = os.getenv("MISTRAL_API_KEY", "")
VENICE_API_KEY = os.getenv("VENICE_API_KEY", "")

# Providers are queried in this order until one answer is validated
EXPLORER_PROVIDER_ORDER = os.getenv(
    "EXPLORER_PROVIDER_ORDER", "huggingface,mistral,venice"
).split(",")

# Delay between two attempts on a failing provider (seconds)
EXPLORER_PROVIDER_RETRY_DELAY = float(os.getenv("EXPLORER_PROVIDER_RETRY_DELAY", "60"))
EXPLORER_PROVIDER_TIMEOUT = float(os.getenv("EXPLORER_PROVIDER_TIMEOUT", "120"))


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "1.0"))

# Initialize Sentry
import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Explorer Configuration

# Host of the explored website, e.g. https://www.amazon.fr
EXPLORER_WEBSITE_HOST = os.getenv("WEBSITE_EXPLORE_HOST", "")

# Category being explored and locale of the product pages
EXPLORER_TARGET_KEYWORD = os.getenv("EXPLORER_TARGET_KEYWORD", "whisky")
EXPLORER_LANG_COUNTRY_CODE = os.getenv("EXPLORER_LANG_COUNTRY_CODE", "fr_FR")

# First breadcrumb every grocery product page starts with
EXPLORER_ROOT_BREADCRUMB = os.getenv("EXPLORER_ROOT_BREADCRUMB", "epicerie")

# Breadcrumbs proposed to the operator when a page is forced through
EXPLORER_FALLBACK_BREADCRUMBS = os.getenv(
    "EXPLORER_FALLBACK_BREADCRUMBS",
    "Epicerie›Bières, vins et spiritueux›Spiritueux›Whiskys",
)

# Files: crawl state, reference data, browser cookies
EXPLORER_STATE_DIR = Path(os.getenv("EXPLORER_STATE_DIR", BASE_DIR / "jsons"))
EXPLORER_GAZETTEER_PATH = Path(
    os.getenv("EXPLORER_GAZETTEER_PATH", EXPLORER_STATE_DIR / "iso3166-2.json")
)
EXPLORER_MAPPINGS_PATH = Path(
    os.getenv("EXPLORER_MAPPINGS_PATH", EXPLORER_STATE_DIR / "countries.json")
)
EXPLORER_COOKIES_PATH = Path(
    os.getenv("EXPLORER_COOKIES_PATH", EXPLORER_STATE_DIR / "cookie.json")
)

# Politeness delay between two pages (seconds): 2m30 to 5m30
EXPLORER_MIN_WAIT_SECONDS = float(os.getenv("EXPLORER_MIN_WAIT_SECONDS", "150"))
EXPLORER_MAX_WAIT_SECONDS = float(os.getenv("EXPLORER_MAX_WAIT_SECONDS", "330"))

# Renderer page load timeout (seconds)
EXPLORER_RENDER_TIMEOUT = int(os.getenv("EXPLORER_RENDER_TIMEOUT", "60"))
