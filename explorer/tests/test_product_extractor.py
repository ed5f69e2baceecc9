"""
Tests for ProductExtractor: page checks and product field extraction.

The fixture is a rendered bourbon detail page carrying every field group.
"""

import pytest
from bs4 import BeautifulSoup

from explorer.entities import Detail, PriceDetail, ProductImages, Reviews
from explorer.exceptions import ExtractionFatalError, PageAnomaly
from explorer.services.compression import decompress
from explorer.services.product_extractor import ProductExtractor

BREADCRUMBS = ["bières, vins et spiritueux", "spiritueux", "whiskys"]
URL = "https://www.example.fr/dp/B00BXQ8N9Q"


@pytest.fixture
def extractor():
    return ProductExtractor(target_keyword="whisky", lang_country_code="fr_FR", root_breadcrumb="Epicerie")


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


def extract(extractor, soup):
    return extractor.extract_product(soup, URL, BREADCRUMBS, [], "whisky")


# =============================================================================
# Page checks
# =============================================================================


class TestPageChecks:
    """Tests for the anomaly checks run before extraction."""

    def test_product_page_passes(self, extractor, product_soup):
        extractor.check_page_found(product_soup, URL)
        extractor.check_known_layout(product_soup, URL)
        extractor.check_detail_class(product_soup, URL)
        assert extractor.matches_locale(product_soup)
        assert extractor.is_detail(product_soup)
        assert extractor.has_product_panel(product_soup)
        assert not extractor.is_listing(product_soup)

    def test_search_page_is_listing(self, extractor, search_soup):
        extractor.check_known_layout(search_soup)
        assert extractor.is_listing(search_soup)
        assert not extractor.is_detail(search_soup)

    def test_page_not_found(self, extractor):
        soup = soup_of("<html><head><title>Page introuvable</title></head><body></body></html>")
        with pytest.raises(PageAnomaly, match="not found"):
            extractor.check_page_found(soup, URL)

    def test_unknown_layout(self, extractor):
        with pytest.raises(PageAnomaly) as exc_info:
            extractor.check_known_layout(soup_of("<p>Bienvenue</p>"), URL)
        assert exc_info.value.url == URL

    def test_not_an_alcoholic_beverage(self, extractor):
        soup = soup_of('<div id="dp" class="grocery fr_FR"></div>')
        with pytest.raises(PageAnomaly, match="alcoholic_beverage"):
            extractor.check_detail_class(soup, URL)

    def test_empty_detail_class_is_fatal(self, extractor):
        with pytest.raises(ExtractionFatalError) as exc_info:
            extractor.check_detail_class(soup_of('<div id="dp"></div>'), URL)
        assert exc_info.value.stage == "classify"

    def test_other_locale(self, extractor):
        soup = soup_of('<div id="dp" class="grocery de_DE alcoholic_beverage"></div>')
        assert not extractor.matches_locale(soup)


class TestBreadcrumbs:
    def test_read_breadcrumbs(self, extractor, product_soup):
        assert extractor.read_breadcrumbs(product_soup, URL) == (
            "epicerie › bières, vins et spiritueux › spiritueux › whiskys"
        )

    def test_missing_breadcrumbs_is_fatal(self, extractor):
        with pytest.raises(ExtractionFatalError):
            extractor.read_breadcrumbs(soup_of('<div id="dp"></div>'), URL)

    def test_category_check(self, extractor):
        extractor.check_breadcrumbs_category("epicerie › spiritueux › whiskys")
        with pytest.raises(PageAnomaly, match="rhums"):
            extractor.check_breadcrumbs_category("epicerie › spiritueux › whiskys", keyword="rhum")

    def test_split_breadcrumbs(self, extractor):
        crumbs = extractor.split_breadcrumbs("Epicerie › Bières, vins et spiritueux › Spiritueux › Whiskys")
        assert crumbs == BREADCRUMBS

    def test_split_breadcrumbs_wrong_root(self, extractor):
        with pytest.raises(ExtractionFatalError, match="boissons"):
            extractor.split_breadcrumbs("boissons › whiskys", URL)


class TestPageSummary:
    def test_summary_of_product_page(self, extractor, product_soup):
        summary = extractor.page_summary(product_soup, URL)

        assert summary.url == URL
        assert summary.title.startswith("Bulleit Bourbon Frontier Whiskey 70cl")
        assert summary.brand == "Bulleit"
        assert summary.alcohol_type == "Bourbon"
        assert summary.breadcrumbs.endswith("Whiskys")
        assert summary.text == ""

    def test_summary_falls_back_to_page_text(self, extractor):
        soup = soup_of("<html><head><title>Offre</title></head><body><div><p>Coffret cadeau</p></div></body></html>")
        summary = extractor.page_summary(soup, URL)
        assert "Coffret cadeau" in summary.text


# =============================================================================
# Product extraction
# =============================================================================


class TestExtractProduct:
    """Tests for a complete detail page."""

    def test_identity(self, extractor, product_soup):
        draft = extract(extractor, product_soup).draft

        assert draft.external_id == "B00BXQ8N9Q"
        assert draft.name == "Bulleit Bourbon Frontier Whiskey 70cl"
        assert draft.breadcrumbs == BREADCRUMBS
        assert draft.type == "whisky"
        assert draft.lang_code == "fr_FR"
        assert draft.country is None
        assert draft.newer_version is None

    def test_reviews(self, extractor, product_soup):
        assert extract(extractor, product_soup).draft.reviews == Reviews(rating=4.6, rating_count=1234)

    def test_prices(self, extractor, product_soup):
        prices = extract(extractor, product_soup).draft.prices

        assert len(prices) == 1
        assert prices[0].price_to_pay == PriceDetail(price=34.9, currency="€")
        assert prices[0].basis_price == PriceDetail(price=39.9, currency="€")

    def test_images(self, extractor, product_soup):
        assert extract(extractor, product_soup).draft.images == ProductImages(
            bigs=["71AbcXyZ+L", "81DefUvW-L"],
            thumbnails=["41AbcXyZ+L", "51DefUvW-L"],
        )

    def test_details_are_cleaned_and_deduplicated(self, extractor, product_soup):
        draft = extract(extractor, product_soup).draft

        assert draft.details == [
            Detail(legend="Marque", value="Bulleit"),
            Detail(legend="Type d'alcool", value="Bourbon"),
            Detail(legend="Volume", value="70 Centilitres"),
            Detail(legend="Teneur en alcool", value="45 Pourcentage par volume"),
            Detail(legend="Fabricant", value="Diageo"),
            Detail(legend="Pays d'origine", value="États-Unis"),
            Detail(legend="Région", value="Kentucky"),
        ]

    def test_features(self, extractor, product_soup):
        assert extract(extractor, product_soup).draft.features == [
            "Bourbon du Kentucky à forte teneur en seigle",
            "Notes de vanille, de chêne et d'épices",
        ]

    def test_description(self, extractor, product_soup):
        page = extract(extractor, product_soup)
        description = page.draft.description

        assert "<strong>Dégustation</strong>" in description.product
        assert "script" not in description.product
        assert page.product_text == (
            "Bulleit Bourbon est distillé et vieilli dans le Kentucky. "
            "Dégustation : vanille, érable et noix de muscade."
        )

    def test_manufacturer_block(self, extractor, product_soup):
        page = extract(extractor, product_soup)
        description = page.draft.description

        assert description.images == ["1a2b3c4d._CR0,0,970,300_PT0_SX970_V1___"]
        assert description.cocktail is True
        manufacturer = decompress(description.manufacturer)
        assert "Bulleit Old Fashioned" in manufacturer
        assert "<style" not in manufacturer
        assert "cel_widget_id" not in manufacturer
        assert page.manufacturer_text == "Un cocktail signature : le Bulleit Old Fashioned."

    def test_family_links_passed_through(self, extractor, product_soup):
        from explorer.entities import FamilyLink

        family = [FamilyLink(asin="B00RYE0001", thumb_src="61RyeAbc+L", title="Bulleit Rye")]
        page = extractor.extract_product(product_soup, URL, BREADCRUMBS, family, "whisky")
        assert page.draft.family_links == family


class TestOptionalBlocks:
    def test_without_reviews(self, extractor, product_soup):
        product_soup.select_one("#averageCustomerReviews").decompose()
        assert extract(extractor, product_soup).draft.reviews is None

    def test_unreadable_price_keeps_currency(self, extractor, product_soup):
        product_soup.select_one(".priceToPay .a-offscreen").string = "12,34,56€"
        prices = extract(extractor, product_soup).draft.prices

        assert prices[0].price_to_pay == PriceDetail(price=None, currency="€")
        assert prices[0].basis_price == PriceDetail(price=39.9, currency="€")

    def test_without_manufacturer_block(self, extractor, product_soup):
        product_soup.select_one("#aplus").decompose()
        page = extract(extractor, product_soup)

        assert page.draft.description.manufacturer is None
        assert page.draft.description.images == []
        assert page.manufacturer_text is None

    def test_product_id_from_url_without_canonical(self, extractor, product_soup):
        product_soup.select_one('link[rel="canonical"]').decompose()
        page = extractor.extract_product(product_soup, "https://www.example.fr/x/dp/B0FROMURL1", BREADCRUMBS, [], "whisky")
        assert page.draft.external_id == "B0FROMURL1"

    def test_newer_version(self, extractor, product_soup):
        block = soup_of(
            '<div id="newer-version"><a class="a-link-normal" href="/Bulleit-10/dp/B0NEWER001">'
            '<img src="https://m.media-amazon.com/images/I/51Newer+L._SS100_.jpg"></a>'
            '<a class="a-link-normal" href="/Bulleit-10/dp/B0NEWER001">Bulleit 10 ans</a></div>'
        ).div
        product_soup.select_one("#ppd").append(block)

        newer = extract(extractor, product_soup).draft.newer_version
        assert newer.asin == "B0NEWER001"
        assert newer.title == "Bulleit 10 ans"
        assert newer.thumb_src == "51Newer+L._SS100_"


class TestBrokenInvariants:
    """Markup drift stops the crawl."""

    def test_thumbnail_count_mismatch(self, extractor, product_soup):
        product_soup.select_one("#altImages li").decompose()
        with pytest.raises(ExtractionFatalError) as exc_info:
            extract(extractor, product_soup)
        assert exc_info.value.stage == "images"

    def test_rating_not_out_of_five(self, extractor, product_html):
        soup = soup_of(product_html.replace("4,6 sur 5 étoiles", "9,2 sur 10 étoiles"))
        with pytest.raises(ExtractionFatalError, match="out of 5"):
            extract(extractor, soup)

    def test_empty_title(self, extractor, product_soup):
        product_soup.select_one("#productTitle").string = "   "
        with pytest.raises(ExtractionFatalError) as exc_info:
            extract(extractor, product_soup)
        assert exc_info.value.stage == "title"
        assert exc_info.value.url == URL

    def test_manufacturer_image_without_extension(self, extractor, product_html):
        html = product_html.replace("1a2b3c4d._CR0,0,970,300_PT0_SX970_V1___.jpg", "noextension")
        with pytest.raises(ExtractionFatalError) as exc_info:
            extract(extractor, soup_of(html))
        assert exc_info.value.stage == "description"
