"""
Explorer application configuration.
"""

from django.apps import AppConfig


class ExplorerConfig(AppConfig):
    """Configuration for the explorer Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "explorer"
    verbose_name = "Alcohol Explorer"
