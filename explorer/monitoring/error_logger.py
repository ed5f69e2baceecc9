"""
Contextual error logging for exploration failures.

Every error is logged with the page id, url and pipeline stage. Crawl-fatal
errors are also sent to Sentry.

Usage:
    from explorer.monitoring import log_error_with_context

    log_error_with_context(error=e, url=url, product_id=asin, fatal=True)
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def error_context(
    error: Exception,
    url: Optional[str] = None,
    product_id: Optional[str] = None,
    stage: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Context of an error, completed from the attributes the explorer exceptions
    carry (``stage``, ``url``).
    """
    return {
        "error_type": type(error).__name__,
        "message": str(error),
        "stage": stage or getattr(error, "stage", None) or "unknown",
        "url": url or getattr(error, "url", None),
        "product_id": product_id,
    }


def log_error_with_context(
    error: Exception,
    url: Optional[str] = None,
    product_id: Optional[str] = None,
    stage: Optional[str] = None,
    fatal: bool = False,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Log an error with its exploration context.

    Args:
        error: The exception that occurred
        url: Page url
        product_id: Product id of the page, when known
        stage: Pipeline stage, defaults to the exception's own stage
        fatal: The error stops the crawl; also captured to Sentry
        extra_context: Additional context for Sentry

    Returns:
        The logged context
    """
    from .sentry_integration import capture_exploration_error

    context = error_context(error, url=url, product_id=product_id, stage=stage)
    message = (
        f"[{context['stage']}] {context['error_type']} on "
        f"{context['product_id'] or context['url']}: {context['message']}"
    )

    if fatal:
        logger.error(message, exc_info=error)
        capture_exploration_error(
            error=error,
            url=context["url"],
            stage=context["stage"],
            product_id=product_id,
            extra_context=extra_context,
        )
    else:
        logger.warning(message)

    return context
