"""
Link Extractor Service.

Produces frontier candidates from listing (search result) pages and product
detail pages. Every href is normalized before it reaches the frontier:

- product links are rewritten to the canonical "/dp/{id}" form
- search pagination links are rebuilt as "/s?k={keyword}[&page={n}]" and kept
  only while the search keyword contains the crawl keyword
- external links and "/vdp/" (video) pages are rejected
"""

import logging
import re
from typing import List, Optional, Protocol, Tuple
from urllib.parse import parse_qs, quote, unquote, urlsplit

from bs4 import BeautifulSoup, Tag
from django.conf import settings

from explorer.entities import FamilyLink, FrontierLink
from explorer.utils.text import process_image_url

logger = logging.getLogger(__name__)

PRODUCT_ID_RE = re.compile(r"/([a-z]{2,}/){0,2}(dp|gp/product)/([A-Z0-9]{10,})", re.IGNORECASE)

# Path prefixes that never lead to a product page
REJECTED_PREFIXES = ("/vdp/",)


def extract_product_id(url: Optional[str]) -> Optional[str]:
    """
    Product id found in a URL path, e.g. "/Bulleit-Bourbon/dp/B00BXQ8N9Q?th=1"
    gives "B00BXQ8N9Q".
    """
    if not url:
        return None
    match = PRODUCT_ID_RE.search(unquote(url))
    return match.group(3) if match else None


class KnownLinks(Protocol):
    def has_url(self, url: str) -> bool: ...

    def has_id(self, product_id: str) -> bool: ...


class LinkExtractor:
    """
    Extracts frontier candidates with the site's structural selectors.

    Links already known to the frontier are still returned, flagged with
    ``add_to_exploration=False``.
    """

    LISTING_SELECTORS = (
        '#search [role="listitem"]',
        '#search [role="navigation"] .a-list-item',
    )
    CAROUSEL_SELECTOR = "#dp .a-carousel-card"
    FAMILY_TABLE_SELECTOR = "#dp .apm-tablemodule-table th"

    def __init__(
        self,
        website_host: Optional[str] = None,
        target_keyword: Optional[str] = None,
        known: Optional[KnownLinks] = None,
    ):
        self.website_host = (website_host or getattr(settings, "EXPLORER_WEBSITE_HOST", "")).rstrip("/")
        self.target_keyword = target_keyword or getattr(settings, "EXPLORER_TARGET_KEYWORD", "whisky")
        self.known = known

    def extract_listing_links(self, soup: BeautifulSoup) -> List[FrontierLink]:
        """Result cards and pagination items of a search page."""
        links = []
        for selector in self.LISTING_SELECTORS:
            for element in soup.select(selector):
                link = self.extract_link(element)
                if link:
                    links.append(link)
        return links

    def extract_detail_links(self, soup: BeautifulSoup) -> Tuple[List[FrontierLink], List[FamilyLink]]:
        """
        Carousel cards and family table links of a detail page.

        Returns:
            (frontier candidates, family links of the product)
        """
        links = []
        for element in soup.select(self.CAROUSEL_SELECTOR):
            link = self.extract_link(element)
            if link:
                links.append(link)

        family_links = []
        for element in soup.select(self.FAMILY_TABLE_SELECTOR):
            link = self.extract_table_link(element)
            if not link:
                continue
            links.append(link)
            if link.product_id and link.thumb_src and link.title:
                family_links.append(
                    FamilyLink(
                        asin=link.product_id,
                        thumb_src=process_image_url(link.thumb_src, with_params=False),
                        title=link.title,
                    )
                )
        return links, family_links

    def extract_link(self, element: Tag) -> Optional[FrontierLink]:
        """Candidate from a result card, carousel card or pagination item."""
        anchor = element.select_one(".a-link-normal")
        href = anchor.get("href") if anchor else None
        if not href:
            pagination = element.select_one(".s-pagination-item")
            href = pagination.get("href") if pagination else None
        href = self.to_site_href(href)
        if href is None:
            return None

        image = element.select_one(".a-link-normal img")
        thumb_src = image.get("src") if image else None
        return self.build_link(href, thumb_src=thumb_src)

    def extract_table_link(self, element: Tag) -> Optional[FrontierLink]:
        """Candidate from a cell of the product family comparison table."""
        anchor = element.find("a")
        href = self.to_site_href(anchor.get("href") if anchor else None)
        if href is None:
            return None
        image = element.find("img")
        return self.build_link(
            href,
            thumb_src=image.get("src") if image else None,
            title=anchor.get_text().strip() or None,
        )

    def to_site_href(self, href: Optional[str]) -> Optional[str]:
        """
        Site-relative form of an href, None for external or unwanted links.

        Absolute links to the explored host lose their scheme and host so
        that search links go through the same keyword filter as relative ones.
        """
        if not href:
            return None

        parts = urlsplit(href)
        if parts.scheme or parts.netloc:
            if parts.netloc.lower() != urlsplit(self.website_host).netloc.lower():
                logger.debug(f"External link rejected: {href}")
                return None
            href = parts.path or "/"
            if parts.query:
                href = f"{href}?{parts.query}"

        if href.startswith("/s?"):
            return self.normalize_search_href(href)
        return href

    def normalize_search_href(self, href: str) -> Optional[str]:
        """
        Rebuild a search link keeping only the keyword and page parameters.

        Returns None when the searched keyword does not contain the crawl keyword.
        """
        params = parse_qs(urlsplit(href).query)
        keyword = (params.get("k") or [""])[0]
        if self.target_keyword not in keyword:
            logger.debug(f"Search link '{keyword}' does not contain '{self.target_keyword}'")
            return None
        normalized = f"/s?k={quote(keyword)}"
        page = (params.get("page") or [""])[0]
        if page:
            normalized = f"{normalized}&page={quote(page)}"
        return normalized

    def build_link(
        self,
        href: str,
        thumb_src: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Optional[FrontierLink]:
        product_id = extract_product_id(href)
        if not product_id and href.startswith(REJECTED_PREFIXES):
            logger.debug(f"Rejected path: {href}")
            return None

        url = f"/dp/{product_id}" if product_id else href
        add_to_exploration = True
        if self.known is not None:
            if self.known.has_url(url) or self.known.has_url(href):
                add_to_exploration = False
            elif product_id and self.known.has_id(product_id):
                add_to_exploration = False

        return FrontierLink(
            url=url,
            product_id=product_id,
            title=title,
            thumb_src=thumb_src,
            add_to_exploration=add_to_exploration,
        )
