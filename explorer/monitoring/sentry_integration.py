"""
Sentry error tracking for the exploration loop.

Sentry itself is configured in config/settings/base.py; without a DSN every
call here is a no-op on Sentry's side.

Usage:
    from explorer.monitoring import add_exploration_breadcrumb, capture_exploration_error

    add_exploration_breadcrumb(url=url, stage="render", message="Rendering page")
    ...
    capture_exploration_error(error=e, url=url, stage="extract", product_id=asin)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = {
    "cookies",
    "cookie",
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
    "token",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values of sensitive keys, recursively."""
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value
    return filtered


def add_exploration_breadcrumb(
    url: str,
    stage: str,
    message: str = "Exploration step",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb for one pipeline stage of one page.

    Args:
        url: Page being explored
        stage: Pipeline stage (render, extract, resolve-country, persist...)
        message: Description of the step
        level: Breadcrumb level (info, warning, error)
        extra_data: Additional context, filtered for sensitive fields
    """
    data = {"url": url, "stage": stage}
    if extra_data:
        data.update(_filter_sensitive_data(extra_data))

    sentry_sdk.add_breadcrumb(category="exploration", message=message, level=level, data=data)


def capture_exploration_error(
    error: Exception,
    url: Optional[str] = None,
    stage: Optional[str] = None,
    product_id: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a crawl error to Sentry with the exploration context as tags/extras.
    """
    add_exploration_breadcrumb(
        url=url or "Unknown",
        stage=stage or "unknown",
        message=f"Error: {type(error).__name__}",
        level="error",
        extra_data=extra_context,
    )

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("explorer.stage", stage or "unknown")
        if product_id:
            scope.set_tag("explorer.product_id", product_id)
        if url:
            scope.set_extra("exploration_url", url)
        if extra_context:
            scope.set_extra("exploration_context", _filter_sensitive_data(extra_context))

        sentry_sdk.capture_exception(error)
