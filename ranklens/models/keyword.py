"""
Keyword performance data types.

Plain dataclasses shared by the parser, aggregator, coverage joiner and
serializer. Numeric fields are always a finite number or None.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ranklens.utils.helpers import format_ratio, to_count_or_none, to_number_or_none

OVERFLOW_BUCKET = ">10"
BUCKET_LABELS = tuple(str(i) for i in range(1, 11)) + (OVERFLOW_BUCKET,)
NEAR_MISS_BUCKETS = tuple(str(i) for i in range(4, 11))

_NUMERIC_FIELDS = ("rank", "clicks", "impressions", "ctr", "search_volume")


@dataclass
class KeywordRecord:
    """One observation of a keyword's performance for a page in a period."""
    keyword: str
    rank: Optional[float] = None  # average position, may be fractional
    clicks: Optional[float] = None
    impressions: Optional[float] = None
    ctr: Optional[float] = None  # percentage, 0-100
    search_volume: Optional[float] = None  # set by the coverage join or the rank export
    country: Optional[str] = None

    def __post_init__(self):
        self.keyword = "" if self.keyword is None else str(self.keyword)
        for name in _NUMERIC_FIELDS:
            setattr(self, name, to_number_or_none(getattr(self, name)))
        if self.ctr is None and self.clicks is not None and self.impressions and self.impressions > 0:
            self.ctr = round(self.clicks / self.impressions * 100, 2)

    @property
    def clicks_or_zero(self) -> float:
        return self.clicks or 0

    @property
    def impressions_or_zero(self) -> float:
        return self.impressions or 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "rank": self.rank,
            "clicks": to_count_or_none(self.clicks),
            "impressions": to_count_or_none(self.impressions),
            "searchVolume": to_count_or_none(self.search_volume),
        }


@dataclass
class CoverageEntry:
    """External search-volume datum for one keyword."""
    text: str
    search_volume: Optional[float] = None
    gsc_clicks: Optional[float] = None
    gsc_impressions: Optional[float] = None
    gsc_avg_position: Optional[float] = None

    def __post_init__(self):
        self.text = "" if self.text is None else str(self.text)
        for name in ("search_volume", "gsc_clicks", "gsc_impressions", "gsc_avg_position"):
            setattr(self, name, to_number_or_none(getattr(self, name)))

    @property
    def has_gsc(self) -> bool:
        return self.gsc_clicks is not None or self.gsc_impressions is not None

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> "CoverageEntry":
        """Build from the coverage API shape {text, searchVolume, gsc: {...}}."""
        gsc = item.get("gsc") or {}
        return cls(
            text=str(item.get("text") or item.get("keyword") or "").strip(),
            search_volume=item.get("searchVolume"),
            gsc_clicks=gsc.get("clicks"),
            gsc_impressions=gsc.get("impressions"),
            gsc_avg_position=gsc.get("avgPosition"),
        )

    def to_dict(self) -> Dict[str, Any]:
        gsc = None
        if self.has_gsc or self.gsc_avg_position is not None:
            gsc = {
                "clicks": to_count_or_none(self.gsc_clicks),
                "impressions": to_count_or_none(self.gsc_impressions),
                "avgPosition": self.gsc_avg_position,
            }
        return {"text": self.text, "searchVolume": to_count_or_none(self.search_volume), "gsc": gsc}


@dataclass
class PageTotals:
    total_clicks: float = 0
    keywords_1to10_count: int = 0
    keywords_4to10_count: int = 0
    total_keywords: int = 0
    potential_traffic: float = 0  # clicks over buckets 4-10

    @property
    def keywords_1to10_ratio(self) -> Optional[str]:
        return format_ratio(self.keywords_1to10_count, self.total_keywords)

    @property
    def keywords_4to10_ratio(self) -> Optional[str]:
        return format_ratio(self.keywords_4to10_count, self.total_keywords)


@dataclass
class PageAggregate:
    """
    Per-URL keyword aggregate.

    Built fresh by the rank aggregator. Afterwards only the coverage joiner
    touches it, and only to fill in missing search volumes.
    """
    page: str
    records: List[KeywordRecord] = field(default_factory=list)  # deduplicated, includes unbucketed
    prev_records: List[KeywordRecord] = field(default_factory=list)
    best_query: Optional[KeywordRecord] = None
    prev_best_query: Optional[KeywordRecord] = None
    buckets: Dict[str, List[KeywordRecord]] = field(
        default_factory=lambda: {label: [] for label in BUCKET_LABELS}
    )
    totals: PageTotals = field(default_factory=PageTotals)
    zero_click_keywords: List[KeywordRecord] = field(default_factory=list)
    country: Optional[str] = None
    region_code: Optional[str] = None
    regions: List[str] = field(default_factory=list)

    def bucket(self, label: str) -> List[KeywordRecord]:
        return self.buckets.get(label, [])

    def records_in(self, labels: Iterable[str]) -> List[KeywordRecord]:
        out: List[KeywordRecord] = []
        for label in labels:
            out.extend(self.bucket(label))
        return out

    @property
    def bucketed_records(self) -> List[KeywordRecord]:
        return self.records_in(BUCKET_LABELS)

    @property
    def unbucketed_records(self) -> List[KeywordRecord]:
        bucketed = {id(r) for r in self.bucketed_records}
        return [r for r in self.records if id(r) not in bucketed]
