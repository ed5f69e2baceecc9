"""
Exploration Orchestrator Service.

Drives the crawl one page at a time:

    next unexplored link -> render -> classify -> extract links / product
    -> resolve origin -> persist -> mark explored -> checkpoint -> wait

Decisions:
- Page anomalies go to the disambiguation callback: skip the page, stop the
  crawl, or continue the extraction anyway.
- Extraction-fatal and record store errors stop the crawl. The page stays
  unexplored and the frontier is checkpointed, so the next run retries it.
- A product that is already stored is logged and the crawl goes on.

The stop flag is checked before and after every suspension point (render,
country resolution, record store calls, politeness wait).
"""

import asyncio
import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from django.conf import settings

from explorer.entities import FamilyLink, FrontierLink, ProductDraft
from explorer.exceptions import (
    ExtractionFatalError,
    PageAnomaly,
    RecordConflictError,
    RecordStoreError,
)
from explorer.monitoring import add_exploration_breadcrumb, log_error_with_context
from explorer.queue import CrawlFrontier
from explorer.services.country_resolver import CountryResolver, ResolutionContext
from explorer.services.disambiguation import Disambiguator, PageAction
from explorer.services.link_extractor import LinkExtractor
from explorer.services.product_extractor import BREADCRUMB_SEPARATOR, ProductExtractor

logger = logging.getLogger(__name__)


@dataclass
class ExplorationState:
    """Mutable state of one exploration run."""

    category: str
    pages_processed: int = 0
    products_created: int = 0
    conflicts: int = 0
    pages_skipped: int = 0
    fatal_error: Optional[Exception] = None

    @contextmanager
    def category_override(self, category: Optional[str]):
        """Scrape under another category for the duration of the block."""
        if not category:
            yield self
            return

        previous = self.category
        self.category = category
        logger.info(f"Category overridden: {previous} -> {category}")
        try:
            yield self
        finally:
            self.category = previous

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "pages_processed": self.pages_processed,
            "products_created": self.products_created,
            "conflicts": self.conflicts,
            "pages_skipped": self.pages_skipped,
            "fatal_error": str(self.fatal_error) if self.fatal_error else None,
        }


class ExplorationOrchestrator:
    """
    Single-task crawl loop.

    Usage:
        orchestrator = ExplorationOrchestrator(
            renderer=renderer,
            frontier=CrawlFrontier(record_store=store).load(),
            resolver=resolver,
            record_store=store,
            disambiguator=ConsoleDisambiguator(),
        )
        state = await orchestrator.run(max_pages=50)
    """

    def __init__(
        self,
        renderer,
        frontier: CrawlFrontier,
        resolver: CountryResolver,
        record_store,
        disambiguator: Disambiguator,
        extractor: Optional[ProductExtractor] = None,
        link_extractor: Optional[LinkExtractor] = None,
        website_host: Optional[str] = None,
        target_keyword: Optional[str] = None,
        fallback_breadcrumbs: Optional[str] = None,
        min_wait_seconds: Optional[float] = None,
        max_wait_seconds: Optional[float] = None,
    ):
        """
        Args:
            renderer: Object with an async ``render(url) -> html`` method
            frontier: Loaded crawl frontier
            resolver: Country resolution cascade
            record_store: Object with async ``exists(ids)`` and ``create(draft)``
            disambiguator: Operator callback for anomalies and choices
            extractor: Product extractor (default from settings)
            link_extractor: Link extractor (default from settings, knowing the frontier)
            website_host: Scheme and host prefixed to frontier urls
            target_keyword: Category scraped by default
            fallback_breadcrumbs: Breadcrumbs proposed when a page's breadcrumbs
                miss the category
            min_wait_seconds: Lower bound of the politeness wait between pages
            max_wait_seconds: Upper bound of the politeness wait between pages
        """
        self.renderer = renderer
        self.frontier = frontier
        self.resolver = resolver
        self.record_store = record_store
        self.disambiguator = disambiguator
        self.website_host = (website_host or getattr(settings, "EXPLORER_WEBSITE_HOST", "")).rstrip("/")
        self.target_keyword = target_keyword or getattr(settings, "EXPLORER_TARGET_KEYWORD", "whisky")
        self.extractor = extractor or ProductExtractor(target_keyword=self.target_keyword)
        self.link_extractor = link_extractor or LinkExtractor(
            website_host=self.website_host,
            target_keyword=self.target_keyword,
            known=frontier,
        )
        self.fallback_breadcrumbs = fallback_breadcrumbs or getattr(
            settings, "EXPLORER_FALLBACK_BREADCRUMBS", ""
        )
        self.min_wait_seconds = (
            min_wait_seconds
            if min_wait_seconds is not None
            else getattr(settings, "EXPLORER_MIN_WAIT_SECONDS", 150)
        )
        self.max_wait_seconds = (
            max_wait_seconds
            if max_wait_seconds is not None
            else getattr(settings, "EXPLORER_MAX_WAIT_SECONDS", 330)
        )

        self._stop = False
        self._stop_reason = ""

    # =========================================================================
    # Stop flag
    # =========================================================================

    @property
    def stopped(self) -> bool:
        return self._stop

    def stop(self, reason: str = "") -> None:
        if not self._stop:
            logger.warning(f"Exploration stopping: {reason or 'requested'}")
        self._stop = True
        self._stop_reason = reason

    # =========================================================================
    # Loop
    # =========================================================================

    async def run(self, max_pages: Optional[int] = None, wait: bool = True) -> ExplorationState:
        """
        Explore frontier links until none is left, the stop flag is set or
        ``max_pages`` pages were processed.

        Never raises for crawl errors: fatal ones are recorded on the returned
        state.
        """
        state = ExplorationState(category=self.target_keyword)

        if not self.website_host:
            logger.error("No EXPLORER_WEBSITE_HOST defined, nothing to explore")
            return state

        try:
            while not self.stopped:
                if max_pages is not None and state.pages_processed >= max_pages:
                    logger.info(f"Page limit reached ({max_pages})")
                    break

                link = self.frontier.next_unexplored()
                if link is None:
                    logger.info("Every frontier link has been explored")
                    break

                try:
                    await self.process_link(link, state)
                except (ExtractionFatalError, RecordStoreError) as e:
                    state.fatal_error = e
                    log_error_with_context(e, url=link.url, product_id=link.product_id, fatal=True)
                    self.stop(str(e))

                if self.stopped:
                    logger.warning(f"Exploration stopped before marking {link.url} as explored")
                    break

                self.frontier.mark_explored(link)
                state.pages_processed += 1
                self.frontier.persist()
                self.log_progress()

                if wait and self.frontier.next_unexplored() is not None:
                    await self.wait()
        finally:
            self.frontier.persist()

        logger.info(f"Exploration finished: {state.to_dict()}")
        return state

    async def wait(self) -> None:
        """Jittered politeness delay between two pages."""
        delay = random.uniform(self.min_wait_seconds, self.max_wait_seconds)
        logger.info(f"{delay / 60:.2f} minutes left to wait...")
        await asyncio.sleep(delay)

    def log_progress(self) -> None:
        stats = self.frontier.stats()
        logger.info(
            f"Explored links: {stats['explored']}/{stats['total']} - {stats['explored_percent']}% "
            f"({stats['products']} product links)"
        )

    # =========================================================================
    # One page
    # =========================================================================

    async def process_link(self, link: FrontierLink, state: ExplorationState) -> Optional[ProductDraft]:
        """
        Render and process one frontier link.

        Returns:
            The stored product draft, or None when the page produced no product
        """
        url = f"{self.website_host}{link.url}"
        add_exploration_breadcrumb(url=url, stage="render", message="Rendering page")
        html = await self.renderer.render(url)
        if self.stopped:
            return None

        soup = BeautifulSoup(html, "html.parser")
        return await self.process_page(soup, url, state)

    async def process_page(
        self, soup: BeautifulSoup, url: str, state: ExplorationState
    ) -> Optional[ProductDraft]:
        if not self._passes(self.extractor.check_page_found, soup, url, state):
            return None
        if not self._passes(self.extractor.check_known_layout, soup, url, state):
            return None

        if self.extractor.is_listing(soup):
            links = self.link_extractor.extract_listing_links(soup)
            added = await self.frontier.enqueue(links)
            logger.info(f"Search page {url}: {len(links)} links found, {len(added)} added")

        if not self.extractor.is_detail(soup):
            return None
        return await self.process_detail_page(soup, url, state)

    async def process_detail_page(
        self, soup: BeautifulSoup, url: str, state: ExplorationState
    ) -> Optional[ProductDraft]:
        if not self._passes(self.extractor.check_detail_class, soup, url, state):
            return None

        if not self.extractor.matches_locale(soup):
            logger.info(f"{url} is not a {self.extractor.lang_country_code} page, skipped")
            return None

        links, family_links = self.link_extractor.extract_detail_links(soup)

        if not self.extractor.has_product_panel(soup):
            logger.info(f"No product panel on {url}")
            return None

        breadcrumbs, category = self.read_breadcrumbs(soup, url, state)
        if breadcrumbs is None:
            return None
        crumbs = self.extractor.split_breadcrumbs(breadcrumbs, url)

        added = await self.frontier.enqueue(links)
        logger.info(f"Product page {url}: {len(links)} links found, {len(added)} added")
        if self.stopped:
            return None

        with state.category_override(category):
            return await self.extract_and_store(soup, url, crumbs, family_links, state)

    def read_breadcrumbs(
        self, soup: BeautifulSoup, url: str, state: ExplorationState
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Breadcrumbs of the page and the category override they call for.

        When the breadcrumbs miss the category and the operator continues
        anyway, the fallback breadcrumbs are proposed; refusing them scrapes the
        product under its own last crumb.

        Returns:
            (breadcrumbs, category override), breadcrumbs None to skip the page
        """
        breadcrumbs = self.extractor.read_breadcrumbs(soup, url)
        try:
            self.extractor.check_breadcrumbs_category(breadcrumbs, state.category, url)
        except PageAnomaly as anomaly:
            if not self._rule_on_anomaly(anomaly, soup, url, state):
                return None, None

            if self.fallback_breadcrumbs and self.disambiguator.confirm_fallback_breadcrumbs(
                self.fallback_breadcrumbs
            ):
                return self.fallback_breadcrumbs.lower(), None

            category = breadcrumbs.split(BREADCRUMB_SEPARATOR)[-1].strip()
            return breadcrumbs, category or None

        return breadcrumbs, None

    async def extract_and_store(
        self,
        soup: BeautifulSoup,
        url: str,
        crumbs: List[str],
        family_links: List[FamilyLink],
        state: ExplorationState,
    ) -> Optional[ProductDraft]:
        add_exploration_breadcrumb(url=url, stage="extract", message="Extracting product")
        page = self.extractor.extract_product(soup, url, crumbs, family_links, state.category)
        draft = page.draft

        add_exploration_breadcrumb(
            url=url,
            stage="resolve-country",
            message="Resolving origin",
            extra_data={"product_id": draft.external_id},
        )
        context = ResolutionContext(
            title=draft.name,
            details=draft.details,
            product_text=page.product_text,
            manufacturer_text=page.manufacturer_text,
            external_id=draft.external_id,
        )
        try:
            draft.country = await self.resolver.discover(context)
        except ExtractionFatalError as e:
            e.url = e.url or url
            raise
        if self.stopped:
            return None

        add_exploration_breadcrumb(
            url=url,
            stage="persist",
            message="Storing product",
            extra_data={"product_id": draft.external_id},
        )
        try:
            await self.record_store.create(draft)
        except RecordConflictError as e:
            state.conflicts += 1
            log_error_with_context(e, url=url, product_id=draft.external_id, stage="persist")
            return None

        state.products_created += 1
        logger.info(f"Product {draft.external_id} stored ({state.category})")
        return draft

    # =========================================================================
    # Anomalies
    # =========================================================================

    def _passes(self, check, soup: BeautifulSoup, url: str, state: ExplorationState) -> bool:
        """Run a page check; on anomaly, True only when the operator continues."""
        try:
            check(soup, url)
        except PageAnomaly as anomaly:
            return self._rule_on_anomaly(anomaly, soup, url, state)
        return True

    def _rule_on_anomaly(
        self, anomaly: PageAnomaly, soup: BeautifulSoup, url: str, state: ExplorationState
    ) -> bool:
        log_error_with_context(anomaly, url=url, stage="classify")
        action = self.disambiguator.resolve_anomaly(anomaly.reason, self.extractor.page_summary(soup, url))

        if action == PageAction.STOP:
            self.stop(f"Operator stopped on '{anomaly.reason}'")
            return False
        if action == PageAction.SKIP:
            state.pages_skipped += 1
            logger.info(f"{url} skipped ({anomaly.reason})")
            return False
        return True


def build_orchestrator(
    renderer,
    disambiguator: Disambiguator,
    record_store=None,
    providers=None,
) -> ExplorationOrchestrator:
    """
    Orchestrator wired from settings: reference data files, record store,
    completion providers and the frontier state file.

    Raises:
        ReferenceDataError: gazetteer or mapping file missing or malformed
    """
    from explorer.services.completion_clients import get_completion_clients
    from explorer.services.record_store import DjangoRecordStore
    from explorer.services.reference_data import load_reference_data

    gazetteer, mappings = load_reference_data()
    record_store = record_store or DjangoRecordStore()
    if providers is None:
        providers = get_completion_clients()

    resolver = CountryResolver(gazetteer, mappings, disambiguator, providers)
    frontier = CrawlFrontier(record_store=record_store).load()

    return ExplorationOrchestrator(
        renderer=renderer,
        frontier=frontier,
        resolver=resolver,
        record_store=record_store,
        disambiguator=disambiguator,
    )


async def explore(
    disambiguator: Disambiguator,
    max_pages: Optional[int] = None,
    wait: bool = True,
    renderer=None,
) -> ExplorationState:
    """
    Run one exploration with the Playwright renderer (or the given one).

    The renderer is closed when the exploration ends.
    """
    if renderer is None:
        from explorer.fetchers import PlaywrightRenderer

        renderer = PlaywrightRenderer()

    try:
        orchestrator = build_orchestrator(renderer, disambiguator)
        return await orchestrator.run(max_pages=max_pages, wait=wait)
    finally:
        await renderer.close()
