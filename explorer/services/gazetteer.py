"""
Country and region gazetteer.

Wraps the ISO 3166 / 3166-2 reference database (one entry per country with
multilingual names and its sub-national regions) and answers name searches
in four modes:

- substring (default): a country or region name contains the term
- exact: a folded name equals the folded, trimmed term
- in-text: the term is a free text and a name appears inside it
- in-text exact: a name appears in the text as a whole word sequence

Results are deep copies, optionally projected through a dotted key
allow-list such as ``["iso", "iso3", "names.fr", "regions.names.fr"]``.
"""

import copy
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from explorer.utils.text import remove_accents

logger = logging.getLogger(__name__)

Country = Dict[str, Any]
Region = Dict[str, Any]

_NON_WORD_RE = re.compile(r"[\W_]+")

# Always kept while searching, stripped afterwards if not requested.
SEARCH_KEYS = ["names", "regions.names"]


def pick(obj: Any, keys: Iterable[str]) -> Any:
    """
    Project ``obj`` through dotted keys.

    Lists met along a path are mapped element-wise, so "regions.names.fr"
    keeps the French name of every region.
    """
    if isinstance(obj, list):
        return [pick(item, keys) for item in obj]
    if not isinstance(obj, dict):
        return obj

    grouped: Dict[str, List[str]] = {}
    whole = set()
    for key in keys:
        head, _, rest = key.partition(".")
        if rest:
            grouped.setdefault(head, []).append(rest)
        else:
            whole.add(head)

    result: Dict[str, Any] = {}
    for head in list(dict.fromkeys(list(grouped) + sorted(whole))):
        if head not in obj:
            continue
        if head in whole:
            result[head] = copy.deepcopy(obj[head])
        else:
            result[head] = pick(obj[head], grouped[head])
    return result


class Gazetteer:
    """
    In-memory searchable list of countries.

    Usage:
        gazetteer = Gazetteer(countries)
        gazetteer.search("Kentucky", exact=True, keep_only_matching_regions=True)
    """

    def __init__(self, countries: Iterable[Country]):
        self._countries: List[Country] = list(countries)

    def __len__(self) -> int:
        return len(self._countries)

    @classmethod
    def from_data(cls, data: Any) -> "Gazetteer":
        """Build from the raw database, either a list or a dict keyed by ISO code."""
        if isinstance(data, dict):
            return cls(data.values())
        return cls(data or [])

    def get_by_iso(self, iso: str) -> Optional[Country]:
        for country in self._countries:
            if country.get("iso") == iso:
                return copy.deepcopy(country)
        return None

    def search(
        self,
        term: Optional[str],
        remove_accents: bool = False,
        search_in_text: bool = False,
        exact: bool = False,
        keep_keys: Optional[List[str]] = None,
        keep_only_matching_regions: bool = False,
    ) -> List[Country]:
        """
        Find countries whose own names or region names match ``term``.

        Args:
            term: Name (or free text when ``search_in_text``) to look for
            remove_accents: Fold accents on both sides before comparing
            search_in_text: Treat ``term`` as a text containing names
            exact: Whole-name comparison instead of substring
            keep_keys: Dotted key allow-list applied to each result
            keep_only_matching_regions: Keep only the regions that matched;
                the ``regions`` key is dropped when none did

        Returns:
            Matching countries in database order, [] for an empty term.
        """
        if not term or not term.strip():
            return []

        options = {
            "remove_accents": remove_accents,
            "search_in_text": search_in_text,
            "exact": exact,
        }

        search_keys = None
        if keep_keys:
            search_keys = list(dict.fromkeys(list(keep_keys) + SEARCH_KEYS))

        results: List[Country] = []
        for country in self._countries:
            candidate = pick(country, search_keys) if search_keys else copy.deepcopy(country)

            names = (candidate.get("names") or {}).values()
            matches_names = any(self.name_matches(term, name, **options) for name in names)
            matching_regions = self.filter_regions(term, candidate.get("regions") or [], **options)

            if not matches_names and not matching_regions:
                continue

            if keep_only_matching_regions:
                if matching_regions:
                    candidate["regions"] = matching_regions
                else:
                    candidate.pop("regions", None)

            if keep_keys:
                candidate = pick(candidate, keep_keys)
            results.append(candidate)

        logger.debug(f"Gazetteer search '{term}' ({options}): {len(results)} match(es)")
        return results

    def filter_regions(self, term: str, regions: List[Region], **options) -> List[Region]:
        return [
            region for region in regions
            if any(self.name_matches(term, name, **options) for name in (region.get("names") or {}).values())
        ]

    @staticmethod
    def name_matches(
        term: str,
        name: str,
        remove_accents: bool = False,
        search_in_text: bool = False,
        exact: bool = False,
    ) -> bool:
        if not name:
            return False

        folded_term = term.lower().strip()
        folded_name = name.lower().strip()
        if remove_accents:
            folded_term = _fold(folded_term)
            folded_name = _fold(folded_name)

        if search_in_text:
            if exact:
                words_text = _NON_WORD_RE.sub(" ", folded_term).strip()
                words_name = _NON_WORD_RE.sub(" ", folded_name).strip()
                return bool(words_name) and f" {words_name} " in f" {words_text} "
            return folded_name in folded_term

        if exact:
            return folded_name == folded_term
        return folded_term in folded_name


def _fold(text: str) -> str:
    return remove_accents(text)
