"""
Tests for the exploration loop.

Pages are served by a fake renderer from the HTML fixtures; the frontier is
persisted under tmp_path, the record store is an AsyncMock and operator
answers are scripted.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from bs4 import BeautifulSoup

from explorer.entities import RegionInfo
from explorer.exceptions import ExtractionFatalError, RecordConflictError, RecordStoreError
from explorer.queue import CrawlFrontier
from explorer.services.country_resolver import CountryResolver
from explorer.services.disambiguation import PageAction, ScriptedDisambiguator
from explorer.services.exploration_orchestrator import (
    ExplorationOrchestrator,
    ExplorationState,
    explore,
)

HOST = "https://www.example.fr"
SEARCH_URL = f"{HOST}/s?k=whisky"
PRODUCT_URL = f"{HOST}/dp/B00BXQ8N9Q"
NOT_FOUND_HTML = "<html><head><title>Page introuvable</title></head><body></body></html>"


class FakeRenderer:
    """Serves fixture pages by url; unknown urls get the not-found page."""

    def __init__(self, pages=None):
        self.pages = pages or {}
        self.rendered = []
        self.close = AsyncMock()

    async def render(self, url):
        self.rendered.append(url)
        page = self.pages.get(url, NOT_FOUND_HTML)
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "whisky-exploration.json"


@pytest.fixture
def frontier(state_path, record_store):
    return CrawlFrontier(record_store=record_store, state_path=state_path, target_keyword="whisky").load()


@pytest.fixture
def build(frontier, record_store, gazetteer, mappings):
    """Orchestrator factory over the fixture reference data."""

    def _build(pages=None, disambiguator=None, **kwargs):
        disambiguator = disambiguator or ScriptedDisambiguator()
        return ExplorationOrchestrator(
            renderer=FakeRenderer(pages),
            frontier=frontier,
            resolver=CountryResolver(gazetteer, mappings, disambiguator),
            record_store=record_store,
            disambiguator=disambiguator,
            website_host=HOST,
            target_keyword="whisky",
            min_wait_seconds=0,
            max_wait_seconds=0,
            **kwargs,
        )

    return _build


def read_state(path):
    with open(path, encoding="utf-8") as f:
        return {item["url"]: item["explored"] for item in json.load(f)["data"]}


# =============================================================================
# Run loop
# =============================================================================


class TestRun:
    """Tests for the page loop."""

    @pytest.mark.asyncio
    async def test_search_then_product_then_missing_page(
        self, build, search_html, product_html, record_store, state_path
    ):
        orchestrator = build({SEARCH_URL: search_html, PRODUCT_URL: product_html})

        state = await orchestrator.run(max_pages=3, wait=False)

        assert orchestrator.renderer.rendered == [SEARCH_URL, PRODUCT_URL, f"{HOST}/dp/B07BPLMSMC"]
        assert state.pages_processed == 3
        assert state.products_created == 1
        assert state.pages_skipped == 1
        assert state.fatal_error is None

        draft = record_store.create.await_args.args[0]
        assert draft.external_id == "B00BXQ8N9Q"
        assert draft.type == "whisky"
        assert draft.breadcrumbs == ["bières, vins et spiritueux", "spiritueux", "whiskys"]
        assert draft.country == RegionInfo(iso="KY", names={"en": "Kentucky", "fr": "Kentucky"})
        assert [link.asin for link in draft.family_links] == ["B00RYE0001"]

        explored = read_state(state_path)
        assert list(explored) == [
            "/s?k=whisky",
            "/dp/B00BXQ8N9Q",
            "/dp/B07BPLMSMC",
            "/s?k=whisky&page=2",
            "/dp/B000JDANI1",
            "/dp/B00RYE0001",
        ]
        assert [url for url, at in explored.items() if at] == ["/s?k=whisky", "/dp/B00BXQ8N9Q", "/dp/B07BPLMSMC"]

    @pytest.mark.asyncio
    async def test_stored_products_not_queued(self, build, search_html, record_store, frontier):
        record_store.exists.return_value = ["B07BPLMSMC"]

        await build({SEARCH_URL: search_html}).run(max_pages=1, wait=False)

        assert not frontier.has_id("B07BPLMSMC")
        record_store.exists.assert_awaited_once_with(["B00BXQ8N9Q", "B07BPLMSMC"])

    @pytest.mark.asyncio
    async def test_ends_when_frontier_is_explored(self, build):
        orchestrator = build({SEARCH_URL: "<html><body><div id='search'></div></body></html>"})

        state = await orchestrator.run(wait=False)

        assert state.pages_processed == 1
        assert orchestrator.frontier.next_unexplored() is None

    @pytest.mark.asyncio
    async def test_fatal_error_stops_and_keeps_page_unexplored(self, build, search_html, state_path):
        error = ExtractionFatalError("Cannot render page: timeout", stage="render", url=PRODUCT_URL)
        orchestrator = build({SEARCH_URL: search_html, PRODUCT_URL: error})

        state = await orchestrator.run(wait=False)

        assert state.fatal_error is error
        assert state.pages_processed == 1
        assert orchestrator.stopped
        assert read_state(state_path)["/dp/B00BXQ8N9Q"] is None
        assert state.to_dict()["fatal_error"] == "Cannot render page: timeout"

    @pytest.mark.asyncio
    async def test_record_store_failure_is_fatal(self, build, search_html, product_html, record_store):
        record_store.create.side_effect = RecordStoreError("database is locked")

        state = await build({SEARCH_URL: search_html, PRODUCT_URL: product_html}).run(wait=False)

        assert isinstance(state.fatal_error, RecordStoreError)
        assert state.products_created == 0

    @pytest.mark.asyncio
    async def test_operator_stop(self, build):
        disambiguator = ScriptedDisambiguator(anomaly_actions=[PageAction.STOP])
        orchestrator = build(disambiguator=disambiguator)

        state = await orchestrator.run(wait=False)

        assert orchestrator.stopped
        assert state.pages_processed == 0
        assert state.fatal_error is None
        assert orchestrator.frontier.next_unexplored().url == "/s?k=whisky"

    @pytest.mark.asyncio
    async def test_without_website_host(self, build, settings):
        settings.EXPLORER_WEBSITE_HOST = ""
        orchestrator = build()
        orchestrator.website_host = ""

        state = await orchestrator.run()

        assert state.pages_processed == 0
        assert orchestrator.renderer.rendered == []

    @pytest.mark.asyncio
    async def test_wait_between_pages(self, build, search_html):
        orchestrator = build({SEARCH_URL: search_html})
        orchestrator.min_wait_seconds, orchestrator.max_wait_seconds = 150, 330

        with patch("explorer.services.exploration_orchestrator.asyncio.sleep", new=AsyncMock()) as sleep:
            await orchestrator.run(max_pages=1)

        delay = sleep.await_args.args[0]
        assert 150 <= delay <= 330


# =============================================================================
# Detail pages
# =============================================================================


class TestDetailPage:
    """Tests for one product page outside the loop."""

    @pytest.mark.asyncio
    async def test_conflict_is_not_fatal(self, build, product_soup, record_store):
        record_store.create.side_effect = RecordConflictError("Alcohol B00BXQ8N9Q already exists")
        state = ExplorationState(category="whisky")

        result = await build().process_page(product_soup, PRODUCT_URL, state)

        assert result is None
        assert state.conflicts == 1
        assert state.products_created == 0

    @pytest.mark.asyncio
    async def test_other_locale_skipped_silently(self, build, product_html, record_store):
        disambiguator = ScriptedDisambiguator()
        soup = BeautifulSoup(product_html.replace("fr_FR", "de_DE"), "html.parser")

        result = await build(disambiguator=disambiguator).process_page(soup, PRODUCT_URL, ExplorationState(category="whisky"))

        assert result is None
        assert disambiguator.calls == []
        record_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_category_anomaly_skipped(self, build, product_soup, record_store):
        state = ExplorationState(category="rhum")

        assert await build().process_page(product_soup, PRODUCT_URL, state) is None
        assert state.pages_skipped == 1
        record_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_breadcrumbs_accepted(self, build, product_soup):
        disambiguator = ScriptedDisambiguator(anomaly_actions=[PageAction.CONTINUE], accept_breadcrumbs=True)
        orchestrator = build(disambiguator=disambiguator, fallback_breadcrumbs="Epicerie›Spiritueux›Whiskys")
        state = ExplorationState(category="rhum")

        draft = await orchestrator.process_page(product_soup, PRODUCT_URL, state)

        assert draft.breadcrumbs == ["spiritueux", "whiskys"]
        assert draft.type == "rhum"
        assert disambiguator.calls == ["resolve_anomaly", "confirm_fallback_breadcrumbs"]

    @pytest.mark.asyncio
    async def test_last_crumb_overrides_category(self, build, product_soup):
        disambiguator = ScriptedDisambiguator(anomaly_actions=[PageAction.CONTINUE], accept_breadcrumbs=False)
        state = ExplorationState(category="rhum")

        draft = await build(disambiguator=disambiguator).process_page(product_soup, PRODUCT_URL, state)

        assert draft.type == "whiskys"
        assert draft.breadcrumbs == ["bières, vins et spiritueux", "spiritueux", "whiskys"]
        assert state.category == "rhum"
        assert state.products_created == 1

    @pytest.mark.asyncio
    async def test_unresolved_country_carries_page_url(self, build, product_html):
        html = product_html.replace("Bulleit", "Maison Inconnue").replace("États-Unis", "").replace("Kentucky", "")
        soup = BeautifulSoup(html, "html.parser")

        with pytest.raises(ExtractionFatalError) as exc_info:
            await build().process_page(soup, PRODUCT_URL, ExplorationState(category="whisky"))

        assert exc_info.value.stage == "resolve-country"
        assert exc_info.value.url == PRODUCT_URL


class TestExplorationState:
    def test_category_override(self):
        state = ExplorationState(category="whisky")

        with state.category_override("rhums"):
            assert state.category == "rhums"
        assert state.category == "whisky"

        with state.category_override(None):
            assert state.category == "whisky"

    def test_override_restored_on_error(self):
        state = ExplorationState(category="whisky")

        with pytest.raises(ValueError):
            with state.category_override("gins"):
                raise ValueError("boom")
        assert state.category == "whisky"

    def test_to_dict(self):
        assert ExplorationState(category="whisky", pages_processed=2).to_dict() == {
            "category": "whisky",
            "pages_processed": 2,
            "products_created": 0,
            "conflicts": 0,
            "pages_skipped": 0,
            "fatal_error": None,
        }


class TestExplore:
    @pytest.mark.asyncio
    async def test_renderer_closed_after_run(self):
        renderer = FakeRenderer()
        expected = ExplorationState(category="whisky", pages_processed=4)

        with patch("explorer.services.exploration_orchestrator.build_orchestrator") as build_orchestrator:
            build_orchestrator.return_value.run = AsyncMock(return_value=expected)
            state = await explore(ScriptedDisambiguator(), max_pages=4, wait=False, renderer=renderer)

        assert state is expected
        build_orchestrator.return_value.run.assert_awaited_once_with(max_pages=4, wait=False)
        renderer.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_renderer_closed_on_error(self):
        renderer = FakeRenderer()

        with patch(
            "explorer.services.exploration_orchestrator.build_orchestrator",
            side_effect=RuntimeError("no reference data"),
        ):
            with pytest.raises(RuntimeError):
                await explore(ScriptedDisambiguator(), renderer=renderer)

        renderer.close.assert_awaited_once()
