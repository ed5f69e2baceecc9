"""
Curated region/nationality/distillery/brand to country hints.

A mapping never resolves a country on its own: each hit only yields a country
name that is then looked up in the gazetteer.
"""

import logging
from typing import Any, Dict, Iterable, List

from explorer.entities import RegionCountryMapping
from explorer.services.gazetteer import Country, Gazetteer

logger = logging.getLogger(__name__)


class RegionCountryMappings:
    """Read-only set of ``RegionCountryMapping`` entries."""

    def __init__(self, mappings: Iterable[RegionCountryMapping]):
        self._mappings: List[RegionCountryMapping] = list(mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self):
        return iter(self._mappings)

    @classmethod
    def from_data(cls, data: Any) -> "RegionCountryMappings":
        if isinstance(data, dict):
            data = data.get("data") or []
        return cls(RegionCountryMapping.from_dict(item) for item in data)

    def matching(self, text: str) -> List[RegionCountryMapping]:
        """Mappings having at least one keyword contained in ``text``."""
        if not text:
            return []
        found = []
        for mapping in self._mappings:
            matches = mapping.matched_keywords(text)
            if matches:
                logger.debug(f"Mapping '{mapping.country_en}' hit on {matches}")
                found.append(mapping)
        return found

    def find_countries(
        self,
        text: str,
        gazetteer: Gazetteer,
        **search_options: Any,
    ) -> List[Country]:
        """
        Gazetteer results for the country of every mapping hit by ``text``.

        ``search_options`` are passed to ``Gazetteer.search``; duplicates
        (same ISO code hinted by several mappings) are collapsed.
        """
        countries: List[Country] = []
        seen: Dict[str, bool] = {}
        for mapping in self.matching(text):
            for country in gazetteer.search(mapping.country_en, **search_options):
                iso = country.get("iso")
                if iso and iso in seen:
                    continue
                if iso:
                    seen[iso] = True
                countries.append(country)
        return countries
