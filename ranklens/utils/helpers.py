"""
Helper utilities
"""
import math
import re
from typing import Any, Optional

_NON_NUMERIC = re.compile(r"[^\d.\-]")
_HUMAN_NUMBER = re.compile(r"^(\d+(?:\.\d+)?)([kKmMbB])?\+?$")
_SUFFIX_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "b": 1_000_000}


def finite_or_none(value: Any) -> Optional[float]:
    """Return value as a number if it is a finite int/float, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def to_number_or_none(value: Any) -> Optional[float]:
    """
    Parse a loosely formatted number.

    Numbers pass through when finite. Strings are stripped of anything that is
    not a digit, '.' or '-' before parsing, so "20+" reads as 20. Empty,
    "N/A" and unparseable input return None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return finite_or_none(value)
    s = str(value).strip()
    if not s or s.lower() == "n/a":
        return None
    s = _NON_NUMERIC.sub("", s)
    if not s:
        return None
    try:
        n = float(s)
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def parse_human_number(value: Optional[str]) -> Optional[int]:
    """Parse abbreviated counts such as '3.7M', '146.5K' or '20+'."""
    if value is None:
        return None
    s = str(value).strip()
    if not s or s.lower() == "n/a":
        return None
    m = _HUMAN_NUMBER.match(s)
    if not m:
        n = to_number_or_none(s)
        return None if n is None else round(n)
    base = float(m.group(1))
    mult = _SUFFIX_MULTIPLIERS.get((m.group(2) or "").lower(), 1)
    return round(base * mult)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def format_ratio(count: int, total: int) -> Optional[str]:
    """Format count/total as a one-decimal percentage string, None when total is 0."""
    if not total:
        return None
    return f"{safe_divide(count, total) * 100:.1f}%"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, not 2)."""
    return math.floor(value + 0.5)


def to_count_or_none(value: Any) -> Optional[int]:
    """to_number_or_none, rounded to an int for clicks, impressions and volumes."""
    n = to_number_or_none(value)
    return None if n is None else round(n)
