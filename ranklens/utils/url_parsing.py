"""
URL parsing utilities for region metadata on page aggregates.
"""
from typing import Iterable, List, Optional

# Path segment -> region code, checked in order
_URL_REGION_SEGMENTS = (
    ("/hk/", "hk"),
    ("/tw/", "tw"),
    ("/sg/", "sg"),
    ("/my/", "my"),
    ("/cn/", "cn"),
)

_REGION_ALIASES = {
    "hk": "hk",
    "hong kong": "hk",
    "hongkong": "hk",
    "tw": "tw",
    "taiwan": "tw",
    "sg": "sg",
    "singapore": "sg",
    "my": "my",
    "malaysia": "my",
    "cn": "cn",
    "china": "cn",
    "china mainland": "cn",
    "mainland china": "cn",
}


def normalize_region_code(value: Optional[str]) -> Optional[str]:
    """Map a country/location label to a region code, or None if unknown."""
    if not value:
        return None
    return _REGION_ALIASES.get(str(value).strip().lower())


def infer_region_from_url(url: Optional[str]) -> Optional[str]:
    """Guess a region code from locale path segments such as /hk/."""
    if not url:
        return None
    lower = url.lower()
    for segment, code in _URL_REGION_SEGMENTS:
        if segment in lower:
            return code
    return None


def region_candidates(url: Optional[str], countries: Iterable[Optional[str]]) -> List[str]:
    """
    Collect distinct region codes from country/location labels and the URL.

    Order is first-seen: labels in the order given, then the URL hint.
    """
    seen: List[str] = []
    for country in countries:
        code = normalize_region_code(country)
        if code and code not in seen:
            seen.append(code)
    url_code = infer_region_from_url(url)
    if url_code and url_code not in seen:
        seen.append(url_code)
    return seen
