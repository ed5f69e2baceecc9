"""
Data model of the exploration pipeline.

Frontier links, the product draft built page by page, and the denormalized
country/region projections attached to a product. Gazetteer entries themselves
stay plain dicts (the JSON shape of the iso3166-2 database) so that dotted
key projections can be applied to them.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


def now_ms() -> int:
    """Current time as epoch milliseconds (the crawl state file unit)."""
    return int(time.time() * 1000)


@dataclass
class FrontierLink:
    """
    A discovered page waiting for (or done with) exploration.

    Unique by ``product_id`` when the link points to a product, else by ``url``.
    ``add_to_exploration`` is the extractor's intent flag; it is never persisted.
    """

    url: str
    product_id: Optional[str] = None
    title: Optional[str] = None
    thumb_src: Optional[str] = None
    explored_at: Optional[int] = None
    add_to_exploration: bool = True

    @property
    def key(self) -> str:
        return self.product_id or self.url

    @property
    def is_explored(self) -> bool:
        return self.explored_at is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "asin": self.product_id,
            "url": self.url,
            "explored": self.explored_at,
        }
        if self.title:
            data["title"] = self.title
        if self.thumb_src:
            data["thumbSrc"] = self.thumb_src
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FrontierLink":
        return cls(
            url=data["url"],
            product_id=data.get("asin") or None,
            title=data.get("title"),
            thumb_src=data.get("thumbSrc"),
            explored_at=data.get("explored"),
        )


@dataclass
class Detail:
    """One legend/value row of the product detail tables."""

    legend: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"legend": self.legend, "value": self.value}


@dataclass
class Reviews:
    rating: float
    rating_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"rating": self.rating, "ratingCount": self.rating_count}


@dataclass
class PriceDetail:
    """Amount as displayed; price is None when the amount could not be read."""

    price: Optional[float]
    currency: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"price": self.price, "currency": self.currency}


@dataclass
class PriceItem:
    """Current price and list price observed at ``timestamp``."""

    price_to_pay: Optional[PriceDetail] = None
    basis_price: Optional[PriceDetail] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"timestamp": self.timestamp}
        if self.price_to_pay:
            data["priceToPay"] = self.price_to_pay.to_dict()
        if self.basis_price:
            data["basisPrice"] = self.basis_price.to_dict()
        return data


@dataclass
class FamilyLink:
    """A sibling product (other size, other age) shown on a detail page."""

    asin: str
    thumb_src: str
    title: str

    def to_dict(self) -> Dict[str, str]:
        return {"asin": self.asin, "thumbSrc": self.thumb_src, "title": self.title}


@dataclass
class ProductImages:
    bigs: List[str] = field(default_factory=list)
    thumbnails: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"bigs": list(self.bigs), "thumbnails": list(self.thumbnails)}


@dataclass
class Description:
    """
    Product description (sanitized HTML), manufacturer block images and the
    manufacturer rich block, gzip+base64 compressed.
    """

    product: Optional[str] = None
    images: List[str] = field(default_factory=list)
    manufacturer: Optional[str] = None
    cocktail: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "product": self.product or "",
            "images": list(self.images),
        }
        if self.manufacturer:
            data["manufacturer"] = self.manufacturer
        if self.cocktail:
            data["cocktail"] = True
        return data


@dataclass
class RegionInfo:
    """Resolved sub-national region (ISO 3166-2 sub-code and names)."""

    iso: str
    names: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"names": dict(self.names), "iso": self.iso}

    @classmethod
    def from_region(cls, region: Dict[str, Any]) -> "RegionInfo":
        return cls(iso=region.get("iso", ""), names=dict(region.get("names") or {}))


@dataclass
class CountryInfo:
    """Resolved country, optionally carrying the candidate regions."""

    iso: str
    iso3: str
    names: Dict[str, str] = field(default_factory=dict)
    regions: List[RegionInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "iso": self.iso,
            "iso3": self.iso3,
            "names": dict(self.names),
        }
        if self.regions:
            data["regions"] = [region.to_dict() for region in self.regions]
        return data

    @classmethod
    def from_country(cls, country: Optional[Dict[str, Any]]) -> Optional["CountryInfo"]:
        if not country:
            return None
        return cls(
            iso=country.get("iso", ""),
            iso3=country.get("iso3", ""),
            names=dict(country.get("names") or {}),
            regions=[RegionInfo.from_region(r) for r in country.get("regions") or []],
        )


Origin = Union[CountryInfo, RegionInfo]


@dataclass
class ProductDraft:
    """
    Product record accumulated while extracting a detail page.

    Persisted only once every field group passed its validation gate.
    """

    external_id: str
    name: str
    breadcrumbs: List[str] = field(default_factory=list)
    reviews: Optional[Reviews] = None
    prices: List[PriceItem] = field(default_factory=list)
    images: ProductImages = field(default_factory=ProductImages)
    details: List[Detail] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    description: Description = field(default_factory=Description)
    family_links: List[FamilyLink] = field(default_factory=list)
    newer_version: Optional[FamilyLink] = None
    type: str = ""
    lang_code: str = ""
    country: Optional[Origin] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asin": self.external_id,
            "name": self.name,
            "breadcrumbs": list(self.breadcrumbs),
            "reviews": self.reviews.to_dict() if self.reviews else None,
            "prices": [price.to_dict() for price in self.prices],
            "images": self.images.to_dict(),
            "details": [detail.to_dict() for detail in self.details],
            "features": list(self.features),
            "description": self.description.to_dict(),
            "familyLinks": [link.to_dict() for link in self.family_links],
            "newerVersion": self.newer_version.to_dict() if self.newer_version else None,
            "type": self.type,
            "langCode": self.lang_code,
            "country": self.country.to_dict() if self.country else None,
        }


@dataclass
class RegionCountryMapping:
    """
    Curated hints linking keywords (nationality adjectives, producing regions,
    distilleries, brands) to a country name.
    """

    country_en: str
    country_fr: str
    nationalities: List[str] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)
    whisky_distilleries: List[str] = field(default_factory=list)
    brands: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegionCountryMapping":
        country = data.get("country") or {}
        return cls(
            country_en=country.get("en", ""),
            country_fr=country.get("fr", ""),
            nationalities=list(data.get("nationalities") or []),
            regions=list(data.get("regions") or []),
            whisky_distilleries=list(data.get("whiskyDistilleries") or []),
            brands=list(data.get("brands") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "regions": list(self.regions),
            "nationalities": list(self.nationalities),
            "whiskyDistilleries": list(self.whisky_distilleries),
            "brands": list(self.brands),
            "country": {"en": self.country_en, "fr": self.country_fr},
        }

    def matched_keywords(self, text: str) -> Dict[str, List[str]]:
        """Keywords of this mapping found as substrings of ``text``, by kind."""
        text_lower = (text or "").lower()
        kinds = {
            "regions": self.regions,
            "nationalities": self.nationalities,
            "distilleries": self.whisky_distilleries,
            "brands": self.brands,
        }
        matches: Dict[str, List[str]] = {}
        for kind, keywords in kinds.items():
            found = [k for k in keywords if k and k.lower() in text_lower]
            if found:
                matches[kind] = found
        return matches
