"""
Tests for the Celery task and the explore_site management command.
"""

from io import StringIO
from unittest.mock import AsyncMock, patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from explorer.exceptions import ExtractionFatalError, ReferenceDataError
from explorer.services.disambiguation import ConsoleDisambiguator, ScriptedDisambiguator
from explorer.services.exploration_orchestrator import ExplorationState
from explorer.tasks import run_exploration


def finished_state(**kwargs):
    return ExplorationState(category="whisky", pages_processed=3, products_created=1, **kwargs)


class TestRunExplorationTask:
    def test_completed_run(self):
        with patch(
            "explorer.services.exploration_orchestrator.explore",
            new=AsyncMock(return_value=finished_state()),
        ) as explore:
            result = run_exploration(max_pages=3, wait=False)

        assert result["status"] == "completed"
        assert result["pages_processed"] == 3
        assert result["products_created"] == 1

        disambiguator = explore.await_args.args[0]
        assert isinstance(disambiguator, ScriptedDisambiguator)
        assert explore.await_args.kwargs == {"max_pages": 3, "wait": False}

    def test_failed_run(self):
        state = finished_state(fatal_error=ExtractionFatalError("Product title is missing", stage="title"))

        with patch("explorer.services.exploration_orchestrator.explore", new=AsyncMock(return_value=state)):
            result = run_exploration()

        assert result["status"] == "failed"
        assert result["fatal_error"] == "Product title is missing"


class TestExploreSiteCommand:
    """Tests for the management command."""

    def test_unattended_run(self):
        out = StringIO()
        with patch(
            "explorer.management.commands.explore_site.explore",
            new=AsyncMock(return_value=finished_state()),
        ) as explore:
            call_command("explore_site", "--unattended", "--no-wait", "--max-pages", "3", stdout=out)

        assert isinstance(explore.await_args.args[0], ScriptedDisambiguator)
        assert explore.await_args.kwargs == {"max_pages": 3, "wait": False}
        output = out.getvalue()
        assert "Pages processed: 3" in output
        assert "Products created: 1" in output
        assert "Exploration finished" in output

    def test_interactive_by_default(self):
        with patch(
            "explorer.management.commands.explore_site.explore",
            new=AsyncMock(return_value=finished_state()),
        ) as explore:
            call_command("explore_site", stdout=StringIO())

        assert isinstance(explore.await_args.args[0], ConsoleDisambiguator)
        assert explore.await_args.kwargs == {"max_pages": None, "wait": True}

    def test_fatal_error(self):
        state = finished_state(fatal_error=ExtractionFatalError("Cannot render page", stage="render"))

        with patch("explorer.management.commands.explore_site.explore", new=AsyncMock(return_value=state)):
            with pytest.raises(CommandError, match="Exploration stopped: Cannot render page"):
                call_command("explore_site", "--unattended", stdout=StringIO())

    def test_reference_data_missing(self):
        with patch(
            "explorer.management.commands.explore_site.explore",
            new=AsyncMock(side_effect=ReferenceDataError("Reference data file not found: countries.json")),
        ):
            with pytest.raises(CommandError, match="not found"):
                call_command("explore_site", "--unattended", stdout=StringIO())

    def test_no_website_host(self, settings):
        settings.EXPLORER_WEBSITE_HOST = ""

        with pytest.raises(CommandError, match="WEBSITE_EXPLORE_HOST"):
            call_command("explore_site", stdout=StringIO())
