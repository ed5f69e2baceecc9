"""
Monitoring for the exploration loop.

- Sentry breadcrumbs per page and pipeline stage
- Sentry capture of crawl-fatal errors with crawl context
- Contextual error logging (page id, url, stage)
"""

from .sentry_integration import add_exploration_breadcrumb, capture_exploration_error
from .error_logger import error_context, log_error_with_context

__all__ = [
    "add_exploration_breadcrumb",
    "capture_exploration_error",
    "error_context",
    "log_error_with_context",
]
