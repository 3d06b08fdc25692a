"""
Country / language lookups for the SERP provider.

The tables live in ``data/locales.json`` so they can be extended without a code change.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

LOCALES_FILE = Path(__file__).parent / "data" / "locales.json"


@lru_cache(maxsize=1)
def load_locales() -> Dict[str, Any]:
    with open(LOCALES_FILE, "r", encoding="utf-8") as f:
        return json.load(f)


def get_location_code(country: Optional[str]) -> int:
    """DataForSEO location code for an ISO 3166 alpha-2 country; unknown values fall back to the US."""
    locales = load_locales()
    default = int(locales["default_location_code"])
    if not country:
        return default
    code = country.strip().upper()
    code = locales.get("location_aliases", {}).get(code, code)
    return int(locales["locations"].get(code, default))


def get_language_code(language: Optional[str]) -> str:
    """DataForSEO language code for an ISO 639-1 language (region suffixes tolerated)."""
    locales = load_locales()
    default = locales["default_language_code"]
    if not language:
        return default
    code = language.strip().lower().replace("_", "-")
    languages = locales["languages"]
    if code in languages:
        return languages[code]
    return languages.get(code.split("-")[0], default)
