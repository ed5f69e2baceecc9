"""
Tests for the pipeline entities and their exported JSON shape.
"""

from explorer.entities import (
    CountryInfo,
    Description,
    FrontierLink,
    PriceDetail,
    PriceItem,
    ProductDraft,
    RegionInfo,
)


class TestFrontierLink:
    def test_key(self):
        assert FrontierLink(url="/dp/B00BXQ8N9Q", product_id="B00BXQ8N9Q").key == "B00BXQ8N9Q"
        assert FrontierLink(url="/s?k=whisky").key == "/s?k=whisky"

    def test_dict_round_trip_drops_intent_flag(self):
        link = FrontierLink(url="/dp/B00BXQ8N9Q", product_id="B00BXQ8N9Q", thumb_src="t.jpg", add_to_exploration=False)

        data = link.to_dict()
        assert data == {"asin": "B00BXQ8N9Q", "url": "/dp/B00BXQ8N9Q", "explored": None, "thumbSrc": "t.jpg"}

        restored = FrontierLink.from_dict(data)
        assert restored.add_to_exploration is True
        assert not restored.is_explored


class TestCountryInfo:
    def test_regions_omitted_when_empty(self):
        country = CountryInfo.from_country({"iso": "JP", "iso3": "JPN", "names": {"en": "Japan"}})
        assert country.to_dict() == {"iso": "JP", "iso3": "JPN", "names": {"en": "Japan"}}

    def test_from_empty(self):
        assert CountryInfo.from_country(None) is None
        assert CountryInfo.from_country({}) is None


class TestProductDraft:
    def test_to_dict(self):
        draft = ProductDraft(
            external_id="B00BXQ8N9Q",
            name="Bulleit Bourbon",
            prices=[PriceItem(price_to_pay=PriceDetail(price=34.9, currency="€"), timestamp=1700000000000)],
            description=Description(product="<p>x</p>", manufacturer="H4sI", cocktail=True),
            type="whisky",
            lang_code="fr_FR",
            country=RegionInfo(iso="KY", names={"en": "Kentucky"}),
        )

        data = draft.to_dict()

        assert data["asin"] == "B00BXQ8N9Q"
        assert data["prices"] == [{"timestamp": 1700000000000, "priceToPay": {"price": 34.9, "currency": "€"}}]
        assert data["description"] == {"product": "<p>x</p>", "images": [], "manufacturer": "H4sI", "cocktail": True}
        assert data["images"] == {"bigs": [], "thumbnails": []}
        assert data["country"] == {"names": {"en": "Kentucky"}, "iso": "KY"}
        assert data["reviews"] is None
        assert data["newerVersion"] is None
