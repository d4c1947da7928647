"""
Rank Aggregator

Turns all keyword records for one URL into a PageAggregate: best and
previous-best query, position buckets 1-10 plus >10, zero-click keywords and
page totals. Order inside one call is fixed: deduplicate, then bucket, then
total, since totals are defined over deduplicated, bucketed data.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

from ranklens.models.keyword import (
    BUCKET_LABELS,
    NEAR_MISS_BUCKETS,
    OVERFLOW_BUCKET,
    KeywordRecord,
    PageAggregate,
    PageTotals,
)
from ranklens.services.keyword_format import format_bucket, format_rank_item
from ranklens.services.keyword_normalizer import keyword_key
from ranklens.utils.cache import KeywordKeyCache
from ranklens.utils.helpers import round_half_up
from ranklens.utils.logger import log
from ranklens.utils.url_parsing import normalize_region_code, region_candidates

TOP_RANK_MIN = 1
TOP_RANK_MAX = 3
PAGE_ONE_MAX = 10

_TOP_TEN_BUCKETS = BUCKET_LABELS[:-1]


def _require_list(value: Any, name: str) -> List:
    if value is None:
        raise TypeError(f"{name} must be a list of KeywordRecord, not None")
    return list(value)


def _significance(record: KeywordRecord):
    return (record.impressions_or_zero, record.clicks_or_zero)


def _best_order(record: KeywordRecord):
    """Clicks descending, then rank ascending; unknown rank sorts last."""
    rank = record.rank if record.rank is not None else math.inf
    return (-record.clicks_or_zero, rank)


def dedupe_records(
    records: Iterable[KeywordRecord],
    cache: Optional[KeywordKeyCache] = None,
) -> List[KeywordRecord]:
    """
    Keep one record per normalized keyword.

    The record with more impressions wins, then the one with more clicks; on a
    full tie the first one seen stays. Output keeps first-seen key order.
    """
    kept: Dict[str, KeywordRecord] = {}
    for record in records:
        key = keyword_key(record.keyword, cache)
        if not key:
            continue
        current = kept.get(key)
        if current is None or _significance(record) > _significance(current):
            kept[key] = record
    return list(kept.values())


def bucket_label(rank: Optional[float]) -> Optional[str]:
    """Bucket for a position: '1'..'10' by rounded rank, '>10', or None."""
    if rank is None:
        return None
    if TOP_RANK_MIN <= rank <= PAGE_ONE_MAX:
        return str(round_half_up(rank))
    if rank > PAGE_ONE_MAX:
        return OVERFLOW_BUCKET
    return None


def build_buckets(records: Iterable[KeywordRecord]) -> Dict[str, List[KeywordRecord]]:
    buckets: Dict[str, List[KeywordRecord]] = {label: [] for label in BUCKET_LABELS}
    for record in records:
        label = bucket_label(record.rank)
        if label is not None:
            buckets[label].append(record)
    for label in BUCKET_LABELS:
        buckets[label].sort(key=lambda r: (r.rank, -r.clicks_or_zero))
    return buckets


def select_best_query(records: List[KeywordRecord]) -> Optional[KeywordRecord]:
    """
    Most-clicked keyword ranked 1-3, else most-clicked overall.

    Click ties go to the better (lower) rank.
    """
    top = [
        r for r in records
        if r.rank is not None and TOP_RANK_MIN <= r.rank <= TOP_RANK_MAX
    ]
    pool = top or records
    if not pool:
        return None
    return sorted(pool, key=_best_order)[0]


def select_prev_best_query(prev_records: List[KeywordRecord]) -> Optional[KeywordRecord]:
    """Most-clicked keyword of the previous period."""
    if not prev_records:
        return None
    return sorted(prev_records, key=_best_order)[0]


def compute_totals(records: List[KeywordRecord], buckets: Dict[str, List[KeywordRecord]]) -> PageTotals:
    near_miss = [r for label in NEAR_MISS_BUCKETS for r in buckets[label]]
    top_ten = [r for label in _TOP_TEN_BUCKETS for r in buckets[label]]
    return PageTotals(
        total_clicks=sum(r.clicks_or_zero for r in records),
        keywords_1to10_count=len(top_ten),
        keywords_4to10_count=len(near_miss),
        total_keywords=len(records),
        potential_traffic=sum(r.clicks_or_zero for r in near_miss),
    )


def aggregate(
    records: Iterable[KeywordRecord],
    prev_records: Optional[Iterable[KeywordRecord]] = None,
    page: str = "",
    country: Optional[str] = None,
    cache: Optional[KeywordKeyCache] = None,
) -> PageAggregate:
    """
    Build the PageAggregate for one URL.

    records are the current-period observations, prev_records the
    previous-period ones (their clicks are previous-period clicks). Region
    fields are metadata only and never affect the numbers.
    """
    current = dedupe_records(_require_list(records, "records"), cache)
    previous = dedupe_records(
        _require_list(prev_records if prev_records is not None else [], "prev_records"), cache
    )

    buckets = build_buckets(current)
    totals = compute_totals(current, buckets)

    if country is None:
        country = next((r.country for r in current if r.country), None)
    regions = region_candidates(page, [country] + [r.country for r in current])
    region_code = normalize_region_code(country) or (regions[0] if regions else None)

    result = PageAggregate(
        page=page,
        records=current,
        prev_records=previous,
        best_query=select_best_query(current),
        prev_best_query=select_prev_best_query(previous),
        buckets=buckets,
        totals=totals,
        zero_click_keywords=[r for r in current if r.clicks == 0],
        country=country,
        region_code=region_code,
        regions=regions,
    )

    log.info(
        f"Aggregated {totals.total_keywords} keywords for {page or '(unknown page)'}: "
        f"{totals.keywords_1to10_count} on page one, potential traffic {totals.potential_traffic}"
    )
    return result


def opportunity_keywords(
    agg: PageAggregate,
    cache: Optional[KeywordKeyCache] = None,
) -> List[KeywordRecord]:
    """Keywords in buckets 4-10, minus the best query itself."""
    best_key = keyword_key(agg.best_query.keyword, cache) if agg.best_query else None
    return [
        r for r in agg.records_in(NEAR_MISS_BUCKETS)
        if keyword_key(r.keyword, cache) != best_key
    ]


def page_row(agg: PageAggregate) -> Dict[str, Any]:
    """
    Flatten an aggregate into the per-page spreadsheet row.

    The current_rank_* cells encode impressions as recorded. Rank-export pages
    carry no impressions (Volume goes to search_volume), so their cells read
    "impression: 0"; volumes appear in rank_items_1to10 and best_query_volume.
    """
    best = agg.best_query
    prev = agg.prev_best_query
    totals = agg.totals

    rank_items = []
    seen = set()
    for record in sorted(agg.records_in(_TOP_TEN_BUCKETS), key=lambda r: r.rank):
        if record.keyword in seen:
            continue
        seen.add(record.keyword)
        rank_items.append(format_rank_item(record))

    row: Dict[str, Any] = {
        "page": agg.page,
        "country": agg.country,
        "region_code": agg.region_code,
        "regions": agg.regions or None,
        "best_query": best.keyword if best else None,
        "best_query_clicks": best.clicks if best else None,
        "best_query_position": best.rank if best else None,
        "best_query_volume": best.search_volume if best else None,
        "prev_best_query": prev.keyword if prev else None,
        "prev_best_clicks": prev.clicks if prev else None,
        "prev_best_position": prev.rank if prev else None,
        "total_clicks": totals.total_clicks,
        "keywords_1to10_count": totals.keywords_1to10_count,
        "keywords_4to10_count": totals.keywords_4to10_count,
        "total_keywords": totals.total_keywords,
        "keywords_1to10_ratio": totals.keywords_1to10_ratio,
        "keywords_4to10_ratio": totals.keywords_4to10_ratio,
        "potential_traffic": totals.potential_traffic,
    }
    for label in _TOP_TEN_BUCKETS:
        row[f"current_rank_{label}"] = format_bucket(agg.bucket(label))
    row["current_rank_gt10"] = format_bucket(agg.bucket(OVERFLOW_BUCKET))
    row["rank_items_1to10"] = rank_items
    return row
