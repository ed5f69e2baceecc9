"""
Playwright page renderer.

Renders one page at a time in a single long-lived browser context:
- Session cookies exported from a desktop browser are loaded from a JSON file
- A random desktop user agent is picked per context
- Gallery thumbnails are hovered so that lazy main images get their URLs
"""

import asyncio
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from django.conf import settings

from explorer.exceptions import ExtractionFatalError

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
]

# Browser export keys Playwright does not accept
DROPPED_COOKIE_KEYS = ("hostOnly", "storeId", "id", "size", "session", "expirationDate")

SAME_SITE_VALUES = {
    "strict": "Strict",
    "lax": "Lax",
    "none": "None",
    "no_restriction": "None",
}

THUMBNAIL_SELECTOR = "#ppd .imageThumbnail"


def normalize_cookie(cookie: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a browser-extension cookie export entry to a Playwright cookie.

    ``expirationDate`` becomes ``expires`` (-1 for session cookies) and
    ``sameSite`` is mapped to Playwright's values or dropped.
    """
    normalized = {k: v for k, v in cookie.items() if k not in DROPPED_COOKIE_KEYS}

    if not normalized.get("expires"):
        expiration = cookie.get("expirationDate")
        normalized["expires"] = float(expiration) if expiration else -1

    same_site = SAME_SITE_VALUES.get(str(cookie.get("sameSite", "")).lower())
    if same_site:
        normalized["sameSite"] = same_site
    else:
        normalized.pop("sameSite", None)

    normalized.setdefault("path", "/")
    return normalized


def load_cookies(path: Optional[Path]) -> List[Dict[str, Any]]:
    """Cookies from a JSON export file, [] when the file is missing or empty."""
    if not path or not Path(path).exists():
        logger.info(f"No cookie file at {path}, rendering without session")
        return []

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not data:
        return []
    return [normalize_cookie(cookie) for cookie in data]


class PlaywrightRenderer:
    """
    Headless Chromium renderer.

    Usage:
        async with PlaywrightRenderer() as renderer:
            html = await renderer.render("https://www.example.fr/dp/B00BXQ8N9Q")
    """

    def __init__(
        self,
        cookies_path: Optional[Path] = None,
        timeout: Optional[float] = None,
        headless: bool = True,
    ):
        """
        Args:
            cookies_path: Cookie export file (default EXPLORER_COOKIES_PATH)
            timeout: Navigation timeout in seconds (default EXPLORER_RENDER_TIMEOUT)
            headless: Run the browser without a window
        """
        self.cookies_path = cookies_path or getattr(settings, "EXPLORER_COOKIES_PATH", None)
        self.timeout = timeout or getattr(settings, "EXPLORER_RENDER_TIMEOUT", 60)
        self.headless = headless

        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Launch the browser and open the page used for every render."""
        if self._page is not None:
            return

        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-infobars",
                "--no-sandbox",
                "--disable-dev-shm-usage",
            ],
        )
        user_agent = random.choice(USER_AGENTS)
        self._context = await self._browser.new_context(user_agent=user_agent)

        cookies = load_cookies(self.cookies_path)
        if cookies:
            await self._context.add_cookies(cookies)
            logger.info(f"Loaded {len(cookies)} session cookies")

        self._page = await self._context.new_page()
        logger.info(f"Playwright browser started (user agent: {user_agent})")

    async def close(self):
        """Close page, context, browser and the Playwright driver."""
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def render(self, url: str) -> str:
        """
        Rendered HTML of a page.

        Raises:
            ExtractionFatalError: Navigation or rendering failed
        """
        if self._page is None:
            await self.start()

        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=self.timeout * 1000)
            await self._load_gallery()
            return await self._page.content()
        except Exception as e:
            raise ExtractionFatalError(f"Cannot render page: {e}", stage="render", url=url) from e

    async def _load_gallery(self):
        # Main images are only filled in when their thumbnail is hovered
        thumbnails = await self._page.query_selector_all(THUMBNAIL_SELECTOR)
        for thumbnail in thumbnails:
            await thumbnail.hover()
            await self._page.mouse.wheel(0, 60)
            await asyncio.sleep(0.3)
