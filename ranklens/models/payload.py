"""
Report payload schema.

Validates the analyze payload handed to report renderers. Wire keys are
camelCase; Python attributes are snake_case.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ranklens.utils.helpers import to_count_or_none, to_number_or_none


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _rows_with_text(value: Any, *names: str) -> List[dict]:
    """Keep dict rows that carry non-empty text under one of names."""
    if not isinstance(value, (list, tuple)):
        return []
    rows = []
    for row in value:
        if not isinstance(row, dict):
            continue
        text = next((_clean_text(row.get(n)) for n in names if _clean_text(row.get(n))), "")
        if text:
            rows.append({**row, names[0]: text})
    return rows


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeywordRow(_WireModel):
    keyword: str
    rank: Optional[float] = None
    clicks: Optional[int] = None
    impressions: Optional[int] = None
    search_volume: Optional[int] = None

    @field_validator("rank", mode="before")
    @classmethod
    def coerce_number(cls, v):
        return to_number_or_none(v)

    @field_validator("clicks", "impressions", "search_volume", mode="before")
    @classmethod
    def coerce_count(cls, v):
        return to_count_or_none(v)


class GscStats(_WireModel):
    clicks: Optional[int] = None
    impressions: Optional[int] = None
    avg_position: Optional[float] = None

    @field_validator("avg_position", mode="before")
    @classmethod
    def coerce_number(cls, v):
        return to_number_or_none(v)

    @field_validator("clicks", "impressions", mode="before")
    @classmethod
    def coerce_count(cls, v):
        return to_count_or_none(v)


class CoverageRow(_WireModel):
    text: str
    search_volume: Optional[int] = None
    gsc: Optional[GscStats] = None

    @field_validator("search_volume", mode="before")
    @classmethod
    def coerce_count(cls, v):
        return to_count_or_none(v)

    @field_validator("gsc", mode="before")
    @classmethod
    def coerce_gsc(cls, v):
        return v if isinstance(v, dict) else None


def _keyword_rows(v):
    return _rows_with_text(v, "keyword", "text")


def _coverage_rows(v):
    return _rows_with_text(v, "text", "keyword")


class ZeroSearchVolumeKeywords(_WireModel):
    rank: List[KeywordRow] = []
    coverage: List[CoverageRow] = []

    @field_validator("rank", mode="before")
    @classmethod
    def keep_rank_rows(cls, v):
        return _keyword_rows(v)

    @field_validator("coverage", mode="before")
    @classmethod
    def keep_coverage_rows(cls, v):
        return _coverage_rows(v)


class KeywordCoverage(_WireModel):
    covered: List[CoverageRow] = []
    uncovered: List[CoverageRow] = []
    zero_search_volume: List[CoverageRow] = []

    @field_validator("covered", "uncovered", "zero_search_volume", mode="before")
    @classmethod
    def keep_rows(cls, v):
        return _coverage_rows(v)


class ContentExplorer(_WireModel):
    table: str = ""
    difficulty_notes: List[str] = []
    format_notes: List[str] = []
    paa_notes: List[str] = []
    picked_queries: List[str] = []
    insights: List[str] = []

    @field_validator("table", mode="before")
    @classmethod
    def clean_table(cls, v):
        return _clean_text(v)

    @field_validator(
        "difficulty_notes", "format_notes", "paa_notes", "picked_queries", "insights", mode="before"
    )
    @classmethod
    def clean_notes(cls, v):
        if not isinstance(v, (list, tuple)):
            return []
        notes = []
        for item in v:
            if isinstance(item, dict):
                item = item.get("text") or item.get("title") or item.get("label")
            text = _clean_text(item)
            if text:
                notes.append(text)
        return notes


class AnalyzePayload(_WireModel):
    """Analysis result plus the keyword context it was built from."""
    success: bool = True
    analysis: str = ""
    truncated: bool = False
    keywords_analyzed: Optional[int] = None
    rank_keywords: List[KeywordRow] = []
    top_rank_keywords: List[KeywordRow] = []
    previous_rank_keywords: List[KeywordRow] = []
    zero_search_volume_keywords: ZeroSearchVolumeKeywords = Field(default_factory=ZeroSearchVolumeKeywords)
    keyword_coverage: Optional[KeywordCoverage] = None
    content_explorer: Optional[ContentExplorer] = None

    @field_validator("analysis", mode="before")
    @classmethod
    def clean_analysis(cls, v):
        return _clean_text(v)

    @field_validator("keywords_analyzed", mode="before")
    @classmethod
    def coerce_count(cls, v):
        return to_count_or_none(v)

    @field_validator("rank_keywords", "top_rank_keywords", "previous_rank_keywords", mode="before")
    @classmethod
    def keep_rows(cls, v):
        return _keyword_rows(v)

    @field_validator("zero_search_volume_keywords", mode="before")
    @classmethod
    def coerce_zero(cls, v):
        return v if isinstance(v, dict) else {}

    @field_validator("keyword_coverage", "content_explorer", mode="before")
    @classmethod
    def coerce_section(cls, v):
        return v if isinstance(v, dict) else None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
