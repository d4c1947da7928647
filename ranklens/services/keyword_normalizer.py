"""
Keyword Normalizer

Builds the matching key used to join keyword records from different sources
(rank export, search console rows, coverage API). The key only absorbs
formatting noise: width, case, spacing, zero-width characters and
punctuation. Spelling variants stay distinct.
"""
import re
import unicodedata
from typing import Any, Optional

from ranklens.utils.cache import KeywordKeyCache

_WHITESPACE = re.compile(r"[\s\u3000]+")
_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\u2060\ufeff]")
# ASCII punctuation plus CJK punctuation that NFKC leaves untouched
_PUNCTUATION = re.compile(
    r"[\"'`‘’“”/\\|,:;._+~!@#$%^&*()\[\]{}<>?=\-"
    r"、。「」『』【】《》〈〉"
    r"（）・·…\u2013\u2014～〜]+"
)


def normalize_keyword(raw: Any) -> str:
    """
    Return the normalized matching key for a keyword.

    Never raises; falls back to a trimmed lowercase copy of the input.
    """
    if raw is None:
        return ""
    text = str(raw)
    try:
        key = unicodedata.normalize("NFKC", text).lower()
        key = _WHITESPACE.sub("", key)
        key = _ZERO_WIDTH.sub("", key)
        key = _PUNCTUATION.sub("", key)
        # Removing characters can leave combining marks next to a new base
        return unicodedata.normalize("NFKC", key)
    except Exception:
        return text.strip().lower()


def keyword_key(raw: Any, cache: Optional[KeywordKeyCache] = None) -> str:
    """normalize_keyword, memoized through the caller's per-run cache when given."""
    if cache is None:
        return normalize_keyword(raw)
    return cache.key_for(raw, normalize_keyword)
