"""Data types for RankLens"""

from ranklens.models.keyword import (
    BUCKET_LABELS,
    NEAR_MISS_BUCKETS,
    OVERFLOW_BUCKET,
    CoverageEntry,
    KeywordRecord,
    PageAggregate,
    PageTotals,
)

from ranklens.models.payload import (
    AnalyzePayload,
    ContentExplorer,
    CoverageRow,
    KeywordCoverage,
    KeywordRow,
    ZeroSearchVolumeKeywords,
)

__all__ = [
    "BUCKET_LABELS",
    "NEAR_MISS_BUCKETS",
    "OVERFLOW_BUCKET",
    "CoverageEntry",
    "KeywordRecord",
    "PageAggregate",
    "PageTotals",
    "AnalyzePayload",
    "ContentExplorer",
    "CoverageRow",
    "KeywordCoverage",
    "KeywordRow",
    "ZeroSearchVolumeKeywords",
]
