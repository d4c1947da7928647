"""Per-run memo for normalized keyword keys."""
from typing import Callable, Dict

_MISS = object()


class KeywordKeyCache:
    """
    Maps raw keyword text to its normalized key for the lifetime of one run.

    Callers create one per aggregation run and pass it through; instances are
    never shared between concurrent runs.
    """

    def __init__(self):
        self._keys: Dict[str, str] = {}
        self.hits = 0
        self.misses = 0

    def get(self, keyword: str):
        """Return the cached key, else the _MISS sentinel."""
        value = self._keys.get(keyword, _MISS)
        if value is _MISS:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def set(self, keyword: str, key: str) -> None:
        self._keys[keyword] = key

    def key_for(self, keyword: str, normalize: Callable[[str], str]) -> str:
        """Return the cached key for keyword, computing it with normalize on a miss."""
        value = self.get(keyword)
        if value is _MISS:
            value = normalize(keyword)
            self.set(keyword, value)
        return value

    def clear(self) -> None:
        self._keys.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._keys)
