"""
Country Resolution Service.

Resolves the country (and, when unambiguous, the region) a product comes
from. Evidence is tried in a fixed order and the first strategy producing
one unambiguous country wins:

1. brand: the "brand" detail run through the curated mappings, confirmed or
   narrowed with the country/region details
2. location details: country/region detail values searched in the gazetteer
3. title: country/region names appearing in the product title
4. title mapping: mapping keywords (nationality, region, distillery, brand)
   appearing in the title
5. completion providers: a generated guess validated against the gazetteer

When every strategy fails the operator is asked for a country name.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from explorer.entities import CountryInfo, Detail, Origin, RegionInfo
from explorer.exceptions import CountryResolutionError
from explorer.services.code_blocks import extract_code_blocks
from explorer.services.completion_clients import CompletionClient
from explorer.services.disambiguation import Disambiguator
from explorer.services.gazetteer import Country, Gazetteer
from explorer.services.region_mapping import RegionCountryMappings

logger = logging.getLogger(__name__)

KEEP_KEYS = [
    "iso",
    "iso3",
    "names.fr",
    "names.en",
    "regions.iso",
    "regions.names.fr",
    "regions.names.en",
]

BRAND_LEGENDS = ("marque", "brand")
LOCATION_LEGENDS = ("pays", "country", "région", "region")

COUNTRY_PROMPT = (
    'Guess the manufacturer country (distillery) of this product: title: "{title}", '
    'description 1: "{product_text}", description 2: "{manufacturer_text}". '
    "Give the country name in English and French with its ISO 3166-1 alpha-2 and alpha-3 codes and, "
    "when there is a sub-national region, its ISO 3166-2 sub-code (like SCT for Scotland). "
    "Answer with the country information only, as a JSON object shaped like "
    '{{"iso":"GB","iso3":"GBR","names":{{"en":"United Kingdom","fr":"Royaume-Uni"}},'
    '"regions":[{{"names":{{"en":"Scotland","fr":"Écosse"}},"iso":"SCT"}}]}}, other examples: '
    '{{"iso":"US","iso3":"USA","names":{{"en":"United States","fr":"États-Unis"}},'
    '"regions":[{{"names":{{"en":"Kentucky","fr":"Kentucky"}},"iso":"KY"}}]}} or '
    '{{"names":{{"en":"Japan","fr":"Japon"}},"iso":"JP","iso3":"JPN"}}. '
    "Wrap the result exactly like this: ```json {{}} ```, opening and closing with three backticks. "
    '"regions" is optional.'
)


@dataclass
class ResolutionContext:
    """Evidence available for one product."""

    title: str
    details: List[Detail] = field(default_factory=list)
    product_text: Optional[str] = None
    manufacturer_text: Optional[str] = None
    external_id: str = ""

    def _details_with(self, keywords: Tuple[str, ...]) -> List[Detail]:
        return [d for d in self.details if any(k in d.legend.lower() for k in keywords)]

    @property
    def brand(self) -> Optional[str]:
        found = self._details_with(BRAND_LEGENDS)
        return found[0].value if found else None

    @property
    def location_details(self) -> List[Detail]:
        return self._details_with(LOCATION_LEGENDS)


Strategy = Callable[[ResolutionContext], Awaitable[Optional[CountryInfo]]]


class CountryResolver:
    """
    Strategy cascade over the gazetteer, the curated mappings and the
    completion providers.

    Usage:
        resolver = CountryResolver(gazetteer, mappings, disambiguator, providers)
        origin = await resolver.discover(context)
    """

    def __init__(
        self,
        gazetteer: Gazetteer,
        mappings: RegionCountryMappings,
        disambiguator: Disambiguator,
        providers: Optional[List[CompletionClient]] = None,
    ):
        self.gazetteer = gazetteer
        self.mappings = mappings
        self.disambiguator = disambiguator
        self.providers = providers or []
        self.strategies: List[Tuple[str, Strategy]] = [
            ("brand", self.resolve_from_brand),
            ("location details", self.resolve_from_location_details),
            ("title", self.resolve_from_title),
            ("title mapping", self.resolve_from_title_mapping),
            ("completion providers", self.resolve_from_providers),
        ]

    # =========================================================================
    # Driver
    # =========================================================================

    async def resolve(self, context: ResolutionContext) -> Optional[CountryInfo]:
        """Run the strategies in order; ask the operator when all of them fail."""
        for name, strategy in self.strategies:
            country = await strategy(context)
            if country is not None:
                logger.info(f"[{context.external_id}] Country resolved by {name}: {country.to_dict()}")
                return country
            logger.info(f"[{context.external_id}] No country found by {name}")

        return self.resolve_from_operator()

    async def discover(self, context: ResolutionContext) -> Origin:
        """
        Effective origin of a product: the resolved region when there is exactly
        one candidate region, else the country.

        Raises:
            CountryResolutionError: no country, or several regions and none chosen
        """
        country = await self.resolve(context)
        if country is None:
            raise CountryResolutionError(f"No country resolved for {context.external_id}: {context.title}")

        if len(country.regions) > 1:
            logger.warning(f"[{context.external_id}] Several regions found: {[r.iso for r in country.regions]}")
            region = self.disambiguator.choose_region(country)
            if region is None:
                raise CountryResolutionError(
                    f"Several regions for {context.external_id} in {country.iso} and none chosen"
                )
            return region

        if len(country.regions) == 1:
            return country.regions[0]
        return country

    def select_country(self, candidates: List[Country]) -> Optional[CountryInfo]:
        """The only candidate, or the operator's pick among several."""
        if not candidates:
            return None
        if len(candidates) == 1:
            return CountryInfo.from_country(candidates[0])
        return CountryInfo.from_country(self.disambiguator.choose_country(candidates))

    def search(self, term: str, **options: Any) -> List[Country]:
        options.setdefault("keep_keys", KEEP_KEYS)
        return self.gazetteer.search(term, **options)

    # =========================================================================
    # Strategies
    # =========================================================================

    async def resolve_from_brand(self, context: ResolutionContext) -> Optional[CountryInfo]:
        brand = context.brand
        if not brand or len(brand.strip()) <= 1:
            return None

        found = self.mappings.find_countries(
            brand,
            self.gazetteer,
            exact=True,
            keep_keys=KEEP_KEYS,
            keep_only_matching_regions=True,
        )

        if len(found) > 1:
            logger.warning(f"[{context.external_id}] Several countries found for brand '{brand}'")
            values = [d.value.lower().strip() for d in context.location_details]
            found = [
                country for country in found
                if any(
                    value in (name.lower() for name in (country.get("names") or {}).values())
                    for value in values
                )
            ]

        if not found:
            return None
        if len(found) > 1:
            return self.select_country(found)

        return self.confirm_with_location_details(found[0], context) or CountryInfo.from_country(found[0])

    def confirm_with_location_details(self, country: Country, context: ResolutionContext) -> Optional[CountryInfo]:
        """
        Same country found in the location details, carrying the regions
        matched there (e.g. Kentucky for a United States brand).
        """
        if not context.location_details:
            return None
        joined = " ".join(d.value for d in context.location_details)
        for candidate in self.search(joined, search_in_text=True, exact=True, keep_only_matching_regions=True):
            if candidate.get("iso") == country.get("iso"):
                return CountryInfo.from_country(candidate)
        return None

    async def resolve_from_location_details(self, context: ResolutionContext) -> Optional[CountryInfo]:
        details = context.location_details
        if not details:
            return None
        joined = " ".join(d.value for d in details)
        return self.select_country(
            self.search(joined, search_in_text=True, exact=True, keep_only_matching_regions=True)
        )

    async def resolve_from_title(self, context: ResolutionContext) -> Optional[CountryInfo]:
        return self.select_country(
            self.search(context.title, search_in_text=True, exact=True, keep_only_matching_regions=True)
        )

    async def resolve_from_title_mapping(self, context: ResolutionContext) -> Optional[CountryInfo]:
        return self.select_country(
            self.mappings.find_countries(
                context.title,
                self.gazetteer,
                exact=True,
                keep_keys=KEEP_KEYS,
                keep_only_matching_regions=True,
            )
        )

    async def resolve_from_providers(self, context: ResolutionContext) -> Optional[CountryInfo]:
        if not self.providers:
            return None

        prompt = COUNTRY_PROMPT.format(
            title=context.title,
            product_text=context.product_text or "",
            manufacturer_text=context.manufacturer_text or "",
        )
        for provider in self.providers:
            answer = await provider.complete(prompt)
            if not answer:
                continue

            blocks = extract_code_blocks(answer) or []
            guess = next((b for b in blocks if isinstance(b, dict) and b), None)
            if guess is None:
                logger.warning(f"[{context.external_id}] {provider.name} gave no usable JSON: {answer[:200]}")
                continue

            country = self.validate_guess(guess)
            if country is None:
                logger.warning(f"[{context.external_id}] {provider.name} guess not found in gazetteer: {guess}")
                continue

            if not self.disambiguator.confirm_guess(country, provider.name):
                continue
            return country
        return None

    def validate_guess(self, guess: Dict[str, Any]) -> Optional[CountryInfo]:
        """
        Gazetteer country matching a generated guess, English name first,
        then French name. Guessed regions are kept only when the country has them.
        """
        names = guess.get("names") or {}
        for lang in ("en", "fr"):
            name = names.get(lang)
            if not isinstance(name, str) or not name.strip():
                continue
            candidates = self.search(name)
            if not candidates:
                continue
            same_iso = [c for c in candidates if c.get("iso") == guess.get("iso")]
            if same_iso:
                country = same_iso[0]
            elif len(candidates) == 1:
                country = candidates[0]
            else:
                continue

            info = CountryInfo.from_country(country)
            info.regions = self._matching_regions(info.regions, guess.get("regions") or [])
            return info
        return None

    @staticmethod
    def _matching_regions(regions: List[RegionInfo], guessed: List[Any]) -> List[RegionInfo]:
        kept = []
        for region in regions:
            names = {name.lower() for name in region.names.values() if name}
            for item in guessed:
                if not isinstance(item, dict):
                    continue
                guessed_names = {n.lower() for n in (item.get("names") or {}).values() if isinstance(n, str)}
                if names & guessed_names or (item.get("iso") and item.get("iso") == region.iso):
                    kept.append(region)
                    break
        return kept

    # =========================================================================
    # Last resort
    # =========================================================================

    def resolve_from_operator(self) -> Optional[CountryInfo]:
        name = self.disambiguator.ask_country_name()
        if not name:
            return None
        return self.select_country(self.search(name, exact=True, keep_only_matching_regions=True))
