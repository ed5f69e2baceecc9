"""
Loading of the reference data files (gazetteer and country mappings).

Both are read once at process start; a missing or malformed file is a
configuration error.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Tuple

from django.conf import settings

from explorer.exceptions import ReferenceDataError
from explorer.services.gazetteer import Gazetteer
from explorer.services.region_mapping import RegionCountryMappings

logger = logging.getLogger(__name__)


def read_json_file(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ReferenceDataError(f"Reference data file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ReferenceDataError(f"Invalid JSON in {path}: {e}") from e


def load_gazetteer(path: Optional[Path] = None) -> Gazetteer:
    path = Path(path or settings.EXPLORER_GAZETTEER_PATH)
    data = read_json_file(path)
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        data = data["data"]
    gazetteer = Gazetteer.from_data(data)
    logger.info(f"Loaded {len(gazetteer)} countries from {path}")
    return gazetteer


def load_mappings(path: Optional[Path] = None) -> RegionCountryMappings:
    path = Path(path or settings.EXPLORER_MAPPINGS_PATH)
    mappings = RegionCountryMappings.from_data(read_json_file(path))
    logger.info(f"Loaded {len(mappings)} region/country mappings from {path}")
    return mappings


def load_reference_data() -> Tuple[Gazetteer, RegionCountryMappings]:
    return load_gazetteer(), load_mappings()
