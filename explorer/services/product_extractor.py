"""
Product Extractor Service.

Reads a rendered product detail page into a ``ProductDraft`` and performs the
page checks that decide whether the page can be processed at all.

Two kinds of failures are raised:
- PageAnomaly: the page is not what the crawl expects (not found, another
  category, not an alcoholic beverage). An operator may wave it through.
- ExtractionFatalError: the page is a product page but its markup does not
  satisfy an invariant (missing title, image count mismatch, reviews not
  rated out of 5...). The site layout has drifted and the crawl must stop.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from django.conf import settings

from explorer.entities import (
    Description,
    Detail,
    FamilyLink,
    PriceDetail,
    PriceItem,
    ProductDraft,
    ProductImages,
    Reviews,
)
from explorer.exceptions import CompressionError, ExtractionFatalError, PageAnomaly
from explorer.services.compression import compress, decompress
from explorer.services.html_sanitizer import HtmlSanitizer, get_html_sanitizer
from explorer.services.link_extractor import extract_product_id
from explorer.utils.text import (
    collapse_whitespace,
    extract_numbers,
    extract_price_and_currency,
    process_image_url,
    strip_bidi_marks,
)

logger = logging.getLogger(__name__)

PAGE_NOT_FOUND_TITLE = "Page introuvable"
ALCOHOLIC_BEVERAGE_CLASS = "alcoholic_beverage"
BREADCRUMB_SEPARATOR = "›"

# Detail bullets kept from the "product information" list
DETAIL_BULLET_LEGENDS = ("Fabricant", "Pays", "Région")


@dataclass
class PageSummary:
    """What an operator needs to see to rule on a page anomaly."""

    url: str
    title: str = ""
    breadcrumbs: str = ""
    brand: str = ""
    alcohol_type: str = ""
    text: str = ""


@dataclass
class ProductPage:
    """Extraction result: the draft plus the plain texts used to resolve the origin."""

    draft: ProductDraft
    product_text: Optional[str] = None
    manufacturer_text: Optional[str] = None


class ProductExtractor:
    """
    Extracts product fields from a detail page.

    Usage:
        extractor = ProductExtractor()
        extractor.check_page_found(soup)
        page = extractor.extract_product(soup, url, breadcrumbs, family_links, "whisky")
    """

    TITLE_SELECTOR = "#ppd #productTitle"
    BREADCRUMBS_SELECTOR = "#wayfinding-breadcrumbs_feature_div"
    RATING_SELECTOR = "#ppd #averageCustomerReviews_feature_div #averageCustomerReviews #acrPopover a i > span"
    RATING_COUNT_SELECTOR = "#ppd #averageCustomerReviews_feature_div #averageCustomerReviews #acrCustomerReviewText"
    NEWER_VERSION_SELECTOR = "#ppd #newer-version"
    PRICE_TO_PAY_SELECTOR = "#ppd #apex_desktop .a-price.priceToPay"
    BASIS_PRICE_SELECTOR = "#ppd #apex_desktop .basisPrice .a-price :first-child"
    MAIN_IMAGES_SELECTOR = "#ppd #main-image-container img.a-dynamic-image"
    THUMBNAILS_SELECTOR = "#ppd #altImages .imageThumbnail img"
    OVERVIEW_ROWS_SELECTOR = "#ppd table.a-normal.a-spacing-micro tbody tr"
    TECH_SPEC_ROWS_SELECTOR = "#dp #productDetails_techSpec_section_1 tbody tr"
    DETAIL_BULLETS_SELECTOR = "#dp #detailBullets_feature_div li"
    FEATURES_SELECTOR = "#ppd #feature-bullets li .a-list-item"
    DESCRIPTION_SELECTOR = "#dp #productDescription"
    MANUFACTURER_SELECTOR = "#dp #aplus"
    MANUFACTURER_IMAGES_SELECTOR = "#dp #aplus .desktop .aplus-module:not(.aplus-brand-story-hero)"

    def __init__(
        self,
        sanitizer: Optional[HtmlSanitizer] = None,
        target_keyword: Optional[str] = None,
        lang_country_code: Optional[str] = None,
        root_breadcrumb: Optional[str] = None,
    ):
        self.sanitizer = sanitizer or get_html_sanitizer()
        self.target_keyword = target_keyword or getattr(settings, "EXPLORER_TARGET_KEYWORD", "whisky")
        self.lang_country_code = lang_country_code or getattr(settings, "EXPLORER_LANG_COUNTRY_CODE", "fr_FR")
        self.root_breadcrumb = (root_breadcrumb or getattr(settings, "EXPLORER_ROOT_BREADCRUMB", "epicerie")).lower()

    # =========================================================================
    # Page checks
    # =========================================================================

    @staticmethod
    def is_listing(soup: BeautifulSoup) -> bool:
        return soup.select_one("#search") is not None

    @staticmethod
    def is_detail(soup: BeautifulSoup) -> bool:
        return soup.select_one("#dp") is not None

    @staticmethod
    def has_product_panel(soup: BeautifulSoup) -> bool:
        return soup.select_one("#ppd") is not None

    def check_page_found(self, soup: BeautifulSoup, url: str = "") -> None:
        title = soup.title.get_text() if soup.title else ""
        if PAGE_NOT_FOUND_TITLE in title:
            raise PageAnomaly("Page not found", url=url)

    def check_known_layout(self, soup: BeautifulSoup, url: str = "") -> None:
        if not self.is_listing(soup) and not self.is_detail(soup):
            raise PageAnomaly("Neither a search page nor a product page", url=url)

    def check_detail_class(self, soup: BeautifulSoup, url: str = "") -> None:
        dp_class = self.detail_class(soup)
        if not dp_class:
            raise ExtractionFatalError("Empty product page class", stage="classify", url=url)
        if ALCOHOLIC_BEVERAGE_CLASS not in dp_class:
            raise PageAnomaly(f"'{ALCOHOLIC_BEVERAGE_CLASS}' is not in the product page class", url=url)

    def matches_locale(self, soup: BeautifulSoup) -> bool:
        """False for a product page served for another locale."""
        return self.lang_country_code in self.detail_class(soup)

    @staticmethod
    def detail_class(soup: BeautifulSoup) -> str:
        dp = soup.select_one("#dp")
        if dp is None:
            return ""
        return " ".join(dp.get("class") or [])

    # =========================================================================
    # Breadcrumbs
    # =========================================================================

    def read_breadcrumbs(self, soup: BeautifulSoup, url: str = "") -> str:
        """Breadcrumbs as one lower-cased string, e.g. "epicerie › ... › whiskys"."""
        element = soup.select_one(self.BREADCRUMBS_SELECTOR)
        text = collapse_whitespace(element.get_text()).lower() if element else ""
        if not text:
            raise ExtractionFatalError("Breadcrumbs not found", stage="breadcrumbs", url=url)
        return text

    def check_breadcrumbs_category(self, breadcrumbs: str, keyword: Optional[str] = None, url: str = "") -> None:
        plural = f"{keyword or self.target_keyword}s"
        if plural not in breadcrumbs:
            raise PageAnomaly(f"'{plural}' is not in the breadcrumbs: {breadcrumbs}", url=url)

    def split_breadcrumbs(self, breadcrumbs: str, url: str = "") -> List[str]:
        """Crumbs below the root crumb, which must be the configured one."""
        crumbs = [crumb.strip() for crumb in breadcrumbs.lower().split(BREADCRUMB_SEPARATOR)]
        if crumbs[0] != self.root_breadcrumb:
            raise ExtractionFatalError(
                f"First breadcrumb is '{crumbs[0]}', expected '{self.root_breadcrumb}'",
                stage="breadcrumbs",
                url=url,
            )
        return crumbs[1:]

    # =========================================================================
    # Summary for operator prompts
    # =========================================================================

    def page_summary(self, soup: BeautifulSoup, url: str) -> PageSummary:
        breadcrumbs = soup.select_one(self.BREADCRUMBS_SELECTOR)
        brand = soup.select_one("#dp .po-brand td:nth-child(2)")
        alcohol_type = soup.select_one("#dp .po-alcohol_type td:nth-child(2)")
        summary = PageSummary(
            url=url,
            title=soup.title.get_text().strip() if soup.title else "",
            breadcrumbs=collapse_whitespace(breadcrumbs.get_text()) if breadcrumbs else "",
            brand=brand.get_text().strip() if brand else "",
            alcohol_type=alcohol_type.get_text().strip() if alcohol_type else "",
        )
        if breadcrumbs is None and brand is None:
            summary.text = self.sanitizer.html_to_text(self.sanitizer.optimize_html(str(soup)))
        return summary

    # =========================================================================
    # Product fields
    # =========================================================================

    def extract_external_id(self, soup: BeautifulSoup, url: str) -> Optional[str]:
        """Product id from the canonical link, else from the page URL."""
        canonical = soup.select_one('link[rel~="canonical"]')
        if canonical is not None:
            product_id = extract_product_id(canonical.get("href"))
            if product_id:
                return product_id
        return extract_product_id(url)

    def extract_title(self, soup: BeautifulSoup, url: str = "") -> str:
        element = soup.select_one(self.TITLE_SELECTOR)
        title = element.get_text().strip() if element else ""
        if not title:
            raise ExtractionFatalError("Product title is missing", stage="title", url=url)
        return title

    def extract_reviews(self, soup: BeautifulSoup, url: str = "") -> Optional[Reviews]:
        """
        Rating and rating count, read together as "X sur 5 étoiles (Y évaluations)".

        Returns None for a product without reviews.
        """
        rating = soup.select_one(self.RATING_SELECTOR)
        count = soup.select_one(self.RATING_COUNT_SELECTOR)
        rating_text = rating.get_text().strip() if rating else ""
        count_text = count.get_text().strip() if count else ""
        if not rating_text or not count_text:
            return None

        numbers = extract_numbers(f"{rating_text} ({count_text})")
        if len(numbers) > 3:
            raise ExtractionFatalError(
                f"Too many numbers in reviews: {numbers}", stage="reviews", url=url
            )
        if len(numbers) < 3 or numbers[1] != 5:
            raise ExtractionFatalError(
                f"Reviews are not rated out of 5: {numbers}", stage="reviews", url=url
            )
        return Reviews(rating=float(numbers[0]), rating_count=int(numbers[2]))

    def extract_newer_version(self, soup: BeautifulSoup) -> Optional[FamilyLink]:
        if soup.select_one(self.NEWER_VERSION_SELECTOR) is None:
            return None

        title = href = image_src = None
        for anchor in soup.select(f"{self.NEWER_VERSION_SELECTOR} .a-link-normal"):
            title = title or anchor.get_text().strip() or None
            href = href or anchor.get("href") or None
        for image in soup.select(f"{self.NEWER_VERSION_SELECTOR} img"):
            image_src = image_src or image.get("src") or None

        product_id = extract_product_id(href)
        if not (title and product_id and image_src):
            logger.debug(f"Incomplete newer version block: {title} / {href} / {image_src}")
            return None
        return FamilyLink(asin=product_id, thumb_src=process_image_url(image_src), title=title)

    def extract_prices(self, soup: BeautifulSoup) -> List[PriceItem]:
        price_to_pay = self._first_price(self.PRICE_TO_PAY_SELECTOR, soup)
        basis_price = self._first_price(self.BASIS_PRICE_SELECTOR, soup)
        if not price_to_pay and not basis_price:
            return []
        return [PriceItem(price_to_pay=price_to_pay, basis_price=basis_price)]

    @staticmethod
    def _first_price(selector: str, soup: BeautifulSoup) -> Optional[PriceDetail]:
        element = soup.select_one(selector)
        text = element.get_text().strip() if element else ""
        parsed = extract_price_and_currency(text)
        if not parsed:
            return None
        if parsed["price"] is None:
            logger.warning(f"Unreadable price amount: {text!r}")
        return PriceDetail(price=parsed["price"], currency=parsed["currency"])

    def extract_images(self, soup: BeautifulSoup, url: str = "") -> ProductImages:
        """
        Gallery image ids. Main images only show up once their thumbnail has
        been hovered, which the renderer does before capturing the page.
        """
        bigs = [process_image_url(img.get("src"), with_params=False) for img in soup.select(self.MAIN_IMAGES_SELECTOR)]
        thumbnails = [process_image_url(img.get("src"), with_params=False) for img in soup.select(self.THUMBNAILS_SELECTOR)]

        if len(bigs) != len(thumbnails):
            raise ExtractionFatalError(
                f"Images and thumbnails count differ: {len(bigs)} != {len(thumbnails)}",
                stage="images",
                url=url,
            )
        if not all(bigs) or not all(thumbnails):
            raise ExtractionFatalError("Empty image id in gallery", stage="images", url=url)
        return ProductImages(bigs=bigs, thumbnails=thumbnails)

    def extract_details(self, soup: BeautifulSoup) -> List[Detail]:
        """Legend/value pairs from the overview table, tech specs and detail bullets."""
        pairs: List[Tuple[str, str]] = []

        for row in soup.select(self.OVERVIEW_ROWS_SELECTOR):
            legend = row.select_one("td.a-span3 span.a-text-bold")
            value = row.select_one("td.a-span9 span.a-size-base.po-break-word")
            pairs.append((legend.get_text() if legend else "", value.get_text() if value else ""))

        for row in soup.select(self.TECH_SPEC_ROWS_SELECTOR):
            legend = row.find("th")
            value = row.find("td")
            pairs.append((legend.get_text() if legend else "", value.get_text() if value else ""))

        for item in soup.select(self.DETAIL_BULLETS_SELECTOR):
            parts = collapse_whitespace(item.get_text()).split(":")
            if len(parts) == 2 and any(legend in parts[0] for legend in DETAIL_BULLET_LEGENDS):
                pairs.append((parts[0], parts[1]))

        details: List[Detail] = []
        seen = set()
        for legend, value in pairs:
            legend = collapse_whitespace(strip_bidi_marks(legend))
            value = collapse_whitespace(strip_bidi_marks(value))
            if not legend or not value or (legend, value) in seen:
                continue
            seen.add((legend, value))
            details.append(Detail(legend=legend, value=value))
        return details

    def extract_features(self, soup: BeautifulSoup) -> List[str]:
        return [
            text for text in (item.get_text().strip() for item in soup.select(self.FEATURES_SELECTOR))
            if text
        ]

    def extract_description(
        self, soup: BeautifulSoup, url: str = ""
    ) -> Tuple[Description, Optional[str], Optional[str]]:
        """
        Product description, manufacturer block images and manufacturer block.

        Returns:
            (description, product description text, manufacturer block text)
        """
        description = Description()

        raw = soup.select_one(self.DESCRIPTION_SELECTOR)
        raw_html = raw.decode_contents().strip() if raw else ""
        description.product = self.sanitizer.optimize_html(raw_html) or None
        product_text = self.sanitizer.html_to_text(description.product) or None
        if (self.sanitizer.extract_clean_text(raw_html) or None) != product_text:
            raise ExtractionFatalError(
                "Sanitized product description lost text", stage="description", url=url
            )

        for module in soup.select(self.MANUFACTURER_IMAGES_SELECTOR):
            image = module.find("img")
            src = image.get("data-src") if image else None
            if src:
                description.images.append(process_image_url(src))
        if not all(description.images):
            raise ExtractionFatalError(
                "Empty image id in manufacturer description", stage="description", url=url
            )

        manufacturer_text = None
        blocks = soup.select(self.MANUFACTURER_SELECTOR)
        if blocks:
            concatenated = "".join(block.decode_contents() for block in blocks)
            _, html = self.sanitizer.extract_css_and_html(concatenated)
            clean_html = self.sanitizer.strip_scripts_and_comments(html)
            if not clean_html:
                raise ExtractionFatalError(
                    "Manufacturer description is empty once cleaned", stage="description", url=url
                )

            description.cocktail = "cocktail" in clean_html
            description.manufacturer = compress(clean_html)
            decompressed = decompress(description.manufacturer)
            if decompressed != clean_html:
                raise CompressionError("Compression round trip mismatch", url=url)

            manufacturer_text = self.sanitizer.html_to_text(decompressed)
            if not manufacturer_text:
                raise ExtractionFatalError(
                    "Manufacturer description has no text", stage="description", url=url
                )

        return description, product_text, manufacturer_text

    def extract_product(
        self,
        soup: BeautifulSoup,
        url: str,
        breadcrumbs: List[str],
        family_links: List[FamilyLink],
        category: str,
    ) -> ProductPage:
        """
        Build the product draft of a detail page (origin not resolved yet).

        Raises:
            ExtractionFatalError: on any broken page invariant
        """
        external_id = self.extract_external_id(soup, url)
        if not external_id:
            raise ExtractionFatalError("No product id in canonical link or URL", stage="extract", url=url)

        title = self.extract_title(soup, url)
        draft = ProductDraft(
            external_id=external_id,
            name=title,
            breadcrumbs=breadcrumbs,
            reviews=self.extract_reviews(soup, url),
            newer_version=self.extract_newer_version(soup),
            prices=self.extract_prices(soup),
            images=self.extract_images(soup, url),
            details=self.extract_details(soup),
            features=self.extract_features(soup),
            family_links=family_links,
            type=category,
            lang_code=self.lang_country_code,
        )
        draft.description, product_text, manufacturer_text = self.extract_description(soup, url)

        logger.info(f"Extracted {external_id}: {title} ({len(draft.details)} details, {len(draft.images.bigs)} images)")
        return ProductPage(draft=draft, product_text=product_text, manufacturer_text=manufacturer_text)
