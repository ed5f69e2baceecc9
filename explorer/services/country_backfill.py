"""
Backfill of stored origins.

Records stored before the gazetteer carried French names, or stored with a
region as origin, lack ``names.fr`` or ``iso3``. Their English name is
searched again (exact match, matching regions only) and the origin is
rewritten when the gazetteer gives exactly one country.

Usage:
    backfill = CountryBackfill(load_gazetteer())
    stats = backfill.run()
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Set

from explorer.entities import CountryInfo
from explorer.models import Alcohol
from explorer.services.country_resolver import KEEP_KEYS
from explorer.services.gazetteer import Country, Gazetteer

logger = logging.getLogger(__name__)

# Both countries and regions of France in ISO 3166-2
OVERSEAS_DEPARTMENTS = ("La Réunion", "Martinique", "Guadeloupe")

# Wine region stored as an origin of its own
CHAMPAGNE_NAMES = ("Champagne",)
CHAMPAGNE_ORIGIN = {
    "iso": "FR",
    "iso3": "FRA",
    "names": {"en": "France", "fr": "France"},
    "regions": [{"iso": "GES", "names": {"en": "Champagne", "fr": "Champagne"}}],
}


@dataclass
class BackfillStats:
    french_names_fixed: int = 0
    regions_dropped: int = 0
    iso_codes_fixed: int = 0
    unresolved: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "french_names_fixed": self.french_names_fixed,
            "regions_dropped": self.regions_dropped,
            "iso_codes_fixed": self.iso_codes_fixed,
            "unresolved": sorted(self.unresolved),
        }


class CountryBackfill:
    """Rewrites incomplete stored origins from the gazetteer."""

    def __init__(self, gazetteer: Gazetteer, dry_run: bool = False):
        self.gazetteer = gazetteer
        self.dry_run = dry_run
        self.stats = BackfillStats()

    def run(self) -> BackfillStats:
        self.backfill_french_names()
        self.backfill_region_names()
        self.backfill_iso_codes()
        logger.info(f"Origin backfill done: {self.stats.to_dict()}")
        return self.stats

    # =========================================================================
    # Passes
    # =========================================================================

    def backfill_french_names(self) -> int:
        """Origins without a French country name."""
        fixed = 0
        for alcohol in self._with_origin():
            if _names(alcohol.country).get("fr"):
                continue
            logger.info(f"{alcohol.external_id}: missing French name for {_names(alcohol.country).get('en')}")

            country = self.lookup(alcohol)
            if country is None:
                continue
            if _names(country).get("fr") in OVERSEAS_DEPARTMENTS:
                country.pop("regions", None)
            self.collapse_regions(country)
            if not self.is_complete(country):
                logger.warning(f"{alcohol.external_id}: gazetteer entry is incomplete: {country}")
                continue

            self.save(alcohol, country)
            fixed += 1

        self.stats.french_names_fixed += fixed
        return fixed

    def backfill_region_names(self) -> int:
        """Regions without a French name that only repeat their country."""
        dropped = 0
        for alcohol in self._with_origin():
            regions = alcohol.country.get("regions") or []
            if all(_names(region).get("fr") for region in regions):
                continue
            country_name = _names(alcohol.country).get("en")
            if any(_names(region).get("en") == country_name for region in regions):
                origin = copy.deepcopy(alcohol.country)
                origin.pop("regions", None)
                self.save(alcohol, origin)
                dropped += 1

        self.stats.regions_dropped += dropped
        return dropped

    def backfill_iso_codes(self) -> int:
        """Origins without an ISO 3166-1 alpha-3 code, regions stored alone included."""
        fixed = 0
        for alcohol in self._with_origin():
            if alcohol.country.get("iso3"):
                continue
            names = _names(alcohol.country)
            logger.info(f"{alcohol.external_id}: missing iso3 for {names.get('en')}")

            if names.get("en") in CHAMPAGNE_NAMES or names.get("fr") in CHAMPAGNE_NAMES:
                self.save(alcohol, copy.deepcopy(CHAMPAGNE_ORIGIN))
                fixed += 1
                continue

            country = self.lookup(alcohol)
            if country is None or not country.get("iso3"):
                continue
            self.save(alcohol, self.collapse_regions(country))
            fixed += 1

        self.stats.iso_codes_fixed += fixed
        return fixed

    # =========================================================================
    # Helpers
    # =========================================================================

    def lookup(self, alcohol: Alcohol) -> Optional[Country]:
        name = (_names(alcohol.country).get("en") or "").strip()
        if not name:
            logger.warning(f"{alcohol.external_id}: origin has no English name")
            self.stats.unresolved.add(alcohol.external_id)
            return None

        found = self.gazetteer.search(name, exact=True, keep_keys=KEEP_KEYS, keep_only_matching_regions=True)
        if len(found) != 1:
            logger.info(f"{alcohol.external_id}: {len(found)} gazetteer match(es) for '{name}'")
            self.stats.unresolved.add(alcohol.external_id)
            return None
        return found[0]

    @staticmethod
    def collapse_regions(country: Country) -> Country:
        """Drop a matched region that is the country itself."""
        regions = country.get("regions") or []
        if regions:
            names, first = _names(country), _names(regions[0])
            same_en = first.get("en") and first.get("en") == names.get("en")
            same_fr = first.get("fr") and first.get("fr") == names.get("fr")
            if same_en or same_fr:
                country.pop("regions", None)
        return country

    @staticmethod
    def is_complete(country: Country) -> bool:
        names = _names(country)
        return bool(country.get("iso") and country.get("iso3") and names.get("en") and names.get("fr"))

    def save(self, alcohol: Alcohol, country: Country) -> None:
        origin = CountryInfo.from_country(country).to_dict()
        if self.dry_run:
            logger.info(f"[dry run] {alcohol.external_id}: {alcohol.country} -> {origin}")
            return
        alcohol.country = origin
        alcohol.save(update_fields=["country", "updated_at"])
        logger.info(f"{alcohol.external_id}: origin set to {origin}")

    @staticmethod
    def _with_origin() -> Iterator[Alcohol]:
        for alcohol in Alcohol.objects.exclude(country__isnull=True).order_by("external_id").iterator():
            if isinstance(alcohol.country, dict):
                yield alcohol


def _names(entry: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return (entry or {}).get("names") or {}
