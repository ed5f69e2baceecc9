"""
Tests for Sentry breadcrumbs/capture and contextual error logging.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest

from explorer.exceptions import ExtractionFatalError, RecordConflictError
from explorer.monitoring import (
    add_exploration_breadcrumb,
    capture_exploration_error,
    error_context,
    log_error_with_context,
)
from explorer.monitoring.sentry_integration import _filter_sensitive_data

URL = "https://www.example.fr/dp/B00BXQ8N9Q"


@pytest.fixture
def sentry():
    with patch("explorer.monitoring.sentry_integration.sentry_sdk") as mock_sdk:
        yield mock_sdk


class TestSentryIntegration:
    def test_breadcrumb(self, sentry):
        add_exploration_breadcrumb(url=URL, stage="render", message="Rendering page", extra_data={"api_key": "k"})

        sentry.add_breadcrumb.assert_called_once_with(
            category="exploration",
            message="Rendering page",
            level="info",
            data={"url": URL, "stage": "render", "api_key": "[Filtered]"},
        )

    def test_capture_sets_scope(self, sentry):
        scope = MagicMock()
        sentry.new_scope.return_value.__enter__.return_value = scope
        error = ExtractionFatalError("Product title is missing", stage="title", url=URL)

        capture_exploration_error(error, url=URL, stage="title", product_id="B00BXQ8N9Q")

        scope.set_tag.assert_any_call("explorer.stage", "title")
        scope.set_tag.assert_any_call("explorer.product_id", "B00BXQ8N9Q")
        scope.set_extra.assert_called_once_with("exploration_url", URL)
        sentry.capture_exception.assert_called_once_with(error)
        assert sentry.add_breadcrumb.call_args.kwargs["level"] == "error"

    def test_filter_sensitive_data(self):
        data = {"Cookie": "x", "nested": {"Authorization": "Bearer y", "page": 3}, "url": URL}

        assert _filter_sensitive_data(data) == {
            "Cookie": "[Filtered]",
            "nested": {"Authorization": "[Filtered]", "page": 3},
            "url": URL,
        }


class TestErrorLogger:
    def test_context_from_exception_attributes(self):
        error = ExtractionFatalError("Images and thumbnails count differ", stage="images", url=URL)

        assert error_context(error, product_id="B00BXQ8N9Q") == {
            "error_type": "ExtractionFatalError",
            "message": "Images and thumbnails count differ",
            "stage": "images",
            "url": URL,
            "product_id": "B00BXQ8N9Q",
        }

    def test_context_defaults(self):
        context = error_context(ValueError("boom"))
        assert context["stage"] == "unknown"
        assert context["url"] is None

    def test_non_fatal_only_logged(self, caplog):
        with patch("explorer.monitoring.sentry_integration.capture_exploration_error") as capture:
            with caplog.at_level(logging.WARNING, logger="explorer.monitoring.error_logger"):
                log_error_with_context(RecordConflictError("Alcohol B00BXQ8N9Q already exists"), url=URL, stage="persist")

        capture.assert_not_called()
        assert "[persist] RecordConflictError" in caplog.text

    def test_fatal_captured(self, caplog):
        error = ExtractionFatalError("Cannot render page", stage="render", url=URL)

        with patch("explorer.monitoring.sentry_integration.capture_exploration_error") as capture:
            with caplog.at_level(logging.ERROR, logger="explorer.monitoring.error_logger"):
                context = log_error_with_context(error, fatal=True, extra_context={"pages_processed": 4})

        capture.assert_called_once_with(
            error=error,
            url=URL,
            stage="render",
            product_id=None,
            extra_context={"pages_processed": 4},
        )
        assert context["stage"] == "render"
        assert "Cannot render page" in caplog.text
