"""
Coverage Joiner

Matches an external keyword-volume data set against a page aggregate by
normalized keyword. Entries the page already ranks for are "covered", the
rest are "uncovered" (demand the page does not serve yet). Entries with a
search volume of exactly 0 are also reported as "zero volume", whichever side
they fall on. Matching records get the entry's search volume, but only if
they have none yet, so re-running the join never changes a volume.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ranklens.models.keyword import CoverageEntry, KeywordRecord, PageAggregate
from ranklens.services.keyword_normalizer import keyword_key
from ranklens.utils.cache import KeywordKeyCache
from ranklens.utils.logger import log

CoverageInput = Union[CoverageEntry, Dict[str, Any]]

EMPTY_PROMPT_TEXT = "無"


@dataclass
class CoverageJoinResult:
    covered: List[CoverageEntry] = field(default_factory=list)
    uncovered: List[CoverageEntry] = field(default_factory=list)
    zero_volume: List[CoverageEntry] = field(default_factory=list)
    enriched: int = 0  # records that received a search volume in this pass


def _as_entry(item: CoverageInput) -> CoverageEntry:
    if isinstance(item, CoverageEntry):
        return item
    if isinstance(item, dict):
        return CoverageEntry.from_dict(item)
    raise TypeError(f"coverage items must be CoverageEntry or dict, got {type(item).__name__}")


def _volume_order(entry: CoverageEntry) -> float:
    return entry.search_volume if entry.search_volume is not None else -math.inf


def build_coverage_index(
    coverage: Iterable[CoverageInput],
    cache: Optional[KeywordKeyCache] = None,
) -> Dict[str, CoverageEntry]:
    """
    Map normalized key -> coverage entry.

    On a key collision the entry with the higher search volume wins; unknown
    volume loses to any number, and ties keep the first entry seen.
    """
    if coverage is None:
        raise TypeError("coverage must be a list of coverage entries, not None")
    index: Dict[str, CoverageEntry] = {}
    for item in coverage:
        entry = _as_entry(item)
        key = keyword_key(entry.text, cache)
        if not key:
            log.debug(f"Skipping coverage entry without a usable keyword: {entry.text!r}")
            continue
        current = index.get(key)
        if current is None or _volume_order(entry) > _volume_order(current):
            index[key] = entry
    return index


def join_coverage(
    agg: PageAggregate,
    coverage: Iterable[CoverageInput],
    cache: Optional[KeywordKeyCache] = None,
) -> CoverageJoinResult:
    """Classify coverage entries against agg and fill in missing record volumes."""
    if agg is None:
        raise TypeError("agg must be a PageAggregate, not None")
    index = build_coverage_index(coverage, cache)

    records_by_key: Dict[str, List[KeywordRecord]] = {}
    for record in agg.records:
        records_by_key.setdefault(keyword_key(record.keyword, cache), []).append(record)

    result = CoverageJoinResult()
    for key, entry in index.items():
        if key in records_by_key:
            result.covered.append(entry)
        else:
            result.uncovered.append(entry)
        if entry.search_volume == 0:
            result.zero_volume.append(entry)

    for record in list(agg.records) + list(agg.prev_records):
        entry = index.get(keyword_key(record.keyword, cache))
        if entry is None or entry.search_volume is None or record.search_volume is not None:
            continue
        record.search_volume = entry.search_volume
        result.enriched += 1

    log.info(
        f"Coverage join for {agg.page or '(unknown page)'}: {len(result.covered)} covered, "
        f"{len(result.uncovered)} uncovered, {len(result.zero_volume)} zero-volume, "
        f"{result.enriched} records enriched"
    )
    return result


def zero_volume_records(agg: PageAggregate) -> List[KeywordRecord]:
    """Ranked keywords whose known search volume is exactly 0."""
    return [r for r in agg.records if r.search_volume == 0]


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return str(int(value)) if value == int(value) else f"{value:g}"


def format_coverage_line(entry: CoverageEntry) -> str:
    if entry.has_gsc:
        pos = f"{entry.gsc_avg_position:.1f}" if entry.gsc_avg_position is not None else "N/A"
        return (
            f"{entry.text} (SV: {_fmt(entry.search_volume)}, Clicks: {_fmt(entry.gsc_clicks)}, "
            f"Imp: {_fmt(entry.gsc_impressions)}, Pos: {pos})"
        )
    return f"{entry.text} (SV: {_fmt(entry.search_volume)})"


def build_coverage_prompt_parts(
    covered: Iterable[CoverageEntry],
    uncovered: Iterable[CoverageEntry],
    empty_text: str = EMPTY_PROMPT_TEXT,
) -> Tuple[str, str]:
    """Render covered and uncovered entries as newline-separated prompt text."""
    covered_text = "\n".join(format_coverage_line(e) for e in covered or [])
    uncovered_text = "\n".join(
        f"{e.text} (SV: {_fmt(e.search_volume)})" for e in uncovered or []
    )
    return covered_text or empty_text, uncovered_text or empty_text


def pick_top_queries_by_search_volume(
    entries: Iterable[CoverageEntry],
    limit: int = 3,
) -> List[str]:
    """Texts of the highest-volume entries with a positive search volume."""
    picked = [e for e in entries or [] if e.text and e.search_volume and e.search_volume > 0]
    picked.sort(key=lambda e: e.search_volume, reverse=True)
    return [e.text for e in picked[:limit]]


def pick_top_keywords_by_impressions(
    records: Iterable[KeywordRecord],
    limit: int = 3,
    cache: Optional[KeywordKeyCache] = None,
) -> List[str]:
    """
    Keywords with the most impressions, one per normalized key.

    Duplicates keep the record with the higher impressions.
    """
    best: Dict[str, KeywordRecord] = {}
    for record in records or []:
        key = keyword_key(record.keyword, cache)
        if not key:
            continue
        current = best.get(key)
        if current is None or record.impressions_or_zero > current.impressions_or_zero:
            best[key] = record
    ranked = sorted(best.values(), key=lambda r: r.impressions_or_zero, reverse=True)
    return [r.keyword for r in ranked[:limit]]
