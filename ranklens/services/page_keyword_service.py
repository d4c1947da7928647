"""
Page Keyword Service

Runs the keyword pipeline for one page: aggregate records, join coverage
data, assemble the analyze payload and bound it to the cell budget.
"""
import json
from typing import Any, Dict, Iterable, List, Optional

from ranklens.config import Settings, get_settings
from ranklens.models.keyword import CoverageEntry, KeywordRecord, PageAggregate
from ranklens.services.budgeted_serializer import (
    PayloadLimits,
    ShrinkLimits,
    build_analyze_payload,
    minimal_stub,
    sanitize_analyze_payload,
    shrink_to_fit,
)
from ranklens.services.coverage_joiner import (
    CoverageJoinResult,
    build_coverage_prompt_parts,
    join_coverage,
    pick_top_keywords_by_impressions,
    pick_top_queries_by_search_volume,
)
from ranklens.services.keyword_format import format_keyword_line, format_keyword_lines
from ranklens.services.keyword_parser import prev_best_from_search_row, records_from_search_row
from ranklens.services.rank_aggregator import aggregate, opportunity_keywords, page_row
from ranklens.utils.cache import KeywordKeyCache
from ranklens.utils.logger import log


class PageKeywordService:
    """Service for per-page keyword aggregation and report payloads"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.max_bytes = self.settings.max_analyze_cell_bytes
        self.payload_limits = PayloadLimits.from_settings(self.settings)
        self.shrink_limits = ShrinkLimits.from_settings(self.settings)
        self.top_query_count = self.settings.top_query_count

    def analyze_page(
        self,
        page: str,
        records: Iterable[KeywordRecord],
        prev_records: Optional[Iterable[KeywordRecord]] = None,
        coverage: Optional[Iterable[Any]] = None,
        analysis: str = "",
        content_explorer: Optional[Dict[str, Any]] = None,
        country: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Run the full pipeline for one page.

        Returns the aggregate, the coverage join result (None without coverage
        data), the flat page row and the payload bounded to max_bytes.
        """
        budget = self.max_bytes if max_bytes is None else max_bytes
        cache = KeywordKeyCache()

        agg = aggregate(records, prev_records, page=page, country=country, cache=cache)
        join = join_coverage(agg, coverage, cache) if coverage is not None else None

        raw = build_analyze_payload(agg, join, analysis, content_explorer)
        sanitized = sanitize_analyze_payload(raw, self.payload_limits) or minimal_stub(raw)
        payload = shrink_to_fit(sanitized, budget, self.shrink_limits)

        log.info(f"Analyzed {page}: payload {'truncated' if payload.get('truncated') else 'complete'}")
        return {
            "aggregate": agg,
            "coverage": join,
            "row": page_row(agg),
            "payload": payload,
        }

    def analyze_search_row(
        self,
        row: Dict[str, Any],
        coverage: Optional[Iterable[Any]] = None,
        analysis: str = "",
        max_bytes: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Run the pipeline for a search-console row.

        Current records come from the bucket-cell fields; the prev_best_* fields
        become the previous period.
        """
        records = records_from_search_row(row)
        prev_best = prev_best_from_search_row(row)
        return self.analyze_page(
            page=str(row.get("page") or ""),
            records=records,
            prev_records=[prev_best] if prev_best else [],
            coverage=coverage,
            analysis=analysis,
            max_bytes=max_bytes,
        )

    def prompt_context(
        self,
        agg: PageAggregate,
        join: Optional[CoverageJoinResult] = None,
    ) -> Dict[str, Any]:
        """Human-readable keyword lines for prompt construction."""
        cache = KeywordKeyCache()
        covered: List[CoverageEntry] = join.covered if join else []
        uncovered: List[CoverageEntry] = join.uncovered if join else []
        covered_text, uncovered_text = build_coverage_prompt_parts(covered, uncovered)
        return {
            "best_query": format_keyword_line(agg.best_query) if agg.best_query else None,
            "prev_best_query": format_keyword_line(agg.prev_best_query) if agg.prev_best_query else None,
            "best_query_changed": bool(
                agg.best_query and agg.prev_best_query
                and agg.best_query.keyword != agg.prev_best_query.keyword
            ),
            "opportunity_lines": format_keyword_lines(opportunity_keywords(agg, cache)),
            "covered_text": covered_text,
            "uncovered_text": uncovered_text,
            "top_queries_by_volume": pick_top_queries_by_search_volume(
                covered + uncovered, self.top_query_count
            ),
            "top_keywords_by_impressions": pick_top_keywords_by_impressions(
                agg.records, self.top_query_count, cache
            ),
        }

    @staticmethod
    def to_cell_value(payload: Dict[str, Any]) -> str:
        """Compact JSON for a spreadsheet cell."""
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
