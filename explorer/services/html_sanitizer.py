"""
HTML cleaning for the product and manufacturer description blocks.

Two cleaners share one parser:

- ``optimize_html`` keeps only the readable structure of a block (no links,
  no presentation attributes, no empty elements) and is used for the
  product description.
- ``strip_scripts_and_comments`` keeps the block verbatim apart from active
  or tracking content, and is used for the manufacturer rich block which is
  stored compressed and rendered as is.

Both are idempotent: cleaning already clean markup returns it unchanged.
"""

import logging
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

# data-* attributes needed for lazy-loaded images
DATA_ATTRIBUTES_ALLOWED = ("data-src", "data-a-dynamic-image")

# Elements that are meaningful without content
VOID_ELEMENTS = ("img", "br", "meta", "link", "hr", "input", "source", "wbr", "area", "col")

DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")


class HtmlSanitizer:
    """
    Markup cleaner built on BeautifulSoup (html.parser).

    Usage:
        sanitizer = HtmlSanitizer()
        clean = sanitizer.optimize_html(raw_html)
    """

    OPTIMIZE_REMOVE_SELECTOR = 'script, a, style, iframe, noscript, base, link[rel~="stylesheet"]'
    STRIP_REMOVE_SELECTOR = (
        'hr, script, iframe, base, link[rel~="stylesheet"], '
        'input[type="hidden"], .apm-tablemodule-atc'
    )
    TEXT_REMOVE_SELECTOR = OPTIMIZE_REMOVE_SELECTOR

    def optimize_html(self, html: Optional[str]) -> Optional[str]:
        """
        Reduce a block to its readable structure.

        Returns None for empty input.
        """
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        self._remove_selector(soup, self.OPTIMIZE_REMOVE_SELECTOR)
        self._remove_comments(soup)
        self._remove_hidden(soup)
        self._remove_empty_elements(soup)

        for span in soup.select("span.a-text-bold"):
            span.name = "strong"

        for tag in soup.find_all(True):
            for attr in list(tag.attrs):
                if attr in ("style", "class") or attr.startswith("on"):
                    del tag[attr]
                elif attr.startswith("data-") and attr not in DATA_ATTRIBUTES_ALLOWED:
                    del tag[attr]

        return self._serialize(soup)

    def strip_scripts_and_comments(self, html: Optional[str]) -> Optional[str]:
        """
        Remove active, hidden and tracking content, keep everything else.

        Returns None for empty input.
        """
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        self._remove_selector(soup, self.STRIP_REMOVE_SELECTOR)
        self._remove_comments(soup)

        for link in soup.find_all("a", href=True):
            link["href"] = link["href"].split("?", 1)[0]

        self._remove_hidden(soup)

        for tag in soup.find_all(True):
            for attr in list(tag.attrs):
                if attr == "cel_widget_id" or attr.startswith("on"):
                    del tag[attr]
                elif attr.startswith("data-") and attr not in DATA_ATTRIBUTES_ALLOWED:
                    del tag[attr]

        return self._serialize(soup)

    def extract_css_and_html(self, html: Optional[str]) -> Tuple[List[str], str]:
        """Split embedded <style> blocks off a block: (css rules, remaining html)."""
        if not html:
            return [], ""
        soup = BeautifulSoup(html, "html.parser")
        css = []
        for style in soup.find_all("style"):
            css.append(style.get_text().strip())
            style.decompose()
        return css, self._serialize(soup)

    def extract_clean_text(self, html: Optional[str]) -> Optional[str]:
        """Visible text of a block, ignoring links and non-content elements."""
        if not html:
            return None
        soup = BeautifulSoup(html, "html.parser")
        self._remove_selector(soup, self.TEXT_REMOVE_SELECTOR)
        self._remove_comments(soup)
        self._remove_hidden(soup)
        return WHITESPACE_RE.sub(" ", soup.get_text()).strip()

    def html_to_text(self, html: Optional[str]) -> str:
        if not html:
            return ""
        return WHITESPACE_RE.sub(" ", BeautifulSoup(html, "html.parser").get_text()).strip()

    # Internals

    @staticmethod
    def _remove_selector(soup: BeautifulSoup, selector: str) -> None:
        for tag in soup.select(selector):
            if not tag.decomposed:
                tag.decompose()

    @staticmethod
    def _remove_comments(soup: BeautifulSoup) -> None:
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

    @staticmethod
    def _remove_hidden(soup: BeautifulSoup) -> None:
        for tag in soup.find_all(style=DISPLAY_NONE_RE):
            # already gone with a hidden ancestor
            if not tag.decomposed:
                tag.decompose()

    @staticmethod
    def _remove_empty_elements(soup: BeautifulSoup) -> None:
        while True:
            empties = [
                tag for tag in soup.find_all(True)
                if not tag.contents and tag.name not in VOID_ELEMENTS
            ]
            if not empties:
                return
            for tag in empties:
                tag.decompose()

    @staticmethod
    def _serialize(soup: BeautifulSoup) -> str:
        return WHITESPACE_RE.sub(" ", str(soup)).strip()


_sanitizer: Optional[HtmlSanitizer] = None


def get_html_sanitizer() -> HtmlSanitizer:
    global _sanitizer
    if _sanitizer is None:
        _sanitizer = HtmlSanitizer()
    return _sanitizer
