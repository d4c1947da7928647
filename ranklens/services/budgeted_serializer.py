"""
Budgeted Serializer

Bounds the analyze payload to a byte budget for spreadsheet cells and report
renderers. Shrinking is a fixed, ordered list of reduction steps; each step
runs only while the payload is still over budget and none of them restores
what an earlier step removed. When every step has run and the payload still
does not fit, a minimal stub is returned instead.

Size is measured as compact UTF-8 JSON (no ASCII escaping), which is how the
payload is written to a cell.
"""
import copy
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from ranklens.config import Settings, get_settings
from ranklens.models.keyword import BUCKET_LABELS, PageAggregate
from ranklens.models.payload import AnalyzePayload
from ranklens.services.coverage_joiner import CoverageJoinResult, zero_volume_records
from ranklens.utils.logger import log

_RANK_LIST_KEYS = ("rankKeywords", "topRankKeywords", "previousRankKeywords")
_NOTE_LIST_KEYS = ("difficultyNotes", "formatNotes", "paaNotes", "pickedQueries", "insights")


@dataclass(frozen=True)
class PayloadLimits:
    """Caps applied when sanitizing a raw payload."""
    analysis_chars: int = 16000
    rank_rows: int = 18
    top_rank_rows: int = 8
    prev_rows: int = 10
    zero_rows: int = 10
    coverage_rows: int = 12
    explorer_list: int = 8
    explorer_table_chars: int = 2500

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PayloadLimits":
        s = settings or get_settings()
        return cls(
            analysis_chars=s.max_analysis_chars,
            rank_rows=s.max_rank_rows,
            top_rank_rows=min(s.max_top_rank_rows, s.max_rank_rows),
            prev_rows=s.max_prev_rows,
            zero_rows=s.max_zero_rows,
            coverage_rows=s.max_coverage_rows,
            explorer_list=s.max_explorer_list,
            explorer_table_chars=s.max_explorer_table_chars,
        )


@dataclass(frozen=True)
class ShrinkLimits:
    """List lengths kept by the capping step."""
    rank_rows: int = 10
    top_rank_rows: int = 6
    prev_rows: int = 6
    zero_rank_rows: int = 6
    zero_coverage_rows: int = 4
    coverage_rows: int = 8
    coverage_zero_rows: int = 6
    note_rows: int = 4

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ShrinkLimits":
        s = settings or get_settings()
        return cls(
            rank_rows=s.shrink_rank_rows,
            top_rank_rows=s.shrink_top_rank_rows,
            prev_rows=s.shrink_prev_rows,
            zero_rank_rows=s.shrink_zero_rank_rows,
            zero_coverage_rows=s.shrink_zero_coverage_rows,
            coverage_rows=s.shrink_coverage_rows,
            coverage_zero_rows=s.shrink_coverage_zero_rows,
            note_rows=s.shrink_note_rows,
        )


def payload_size(payload: Any) -> int:
    """Byte length of payload as compact UTF-8 JSON."""
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
    return len(text.encode("utf-8"))


# ---------------------------------------------------------------------------
# Payload assembly and sanitizing
# ---------------------------------------------------------------------------

def build_analyze_payload(
    agg: PageAggregate,
    join: Optional[CoverageJoinResult] = None,
    analysis: str = "",
    content_explorer: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Assemble the raw analyze payload for one page."""
    top_ten = agg.records_in(BUCKET_LABELS[:-1])
    previous = sorted(agg.prev_records, key=lambda r: -r.clicks_or_zero)
    return {
        "success": True,
        "analysis": analysis or "",
        "truncated": False,
        "keywordsAnalyzed": agg.totals.total_keywords,
        "rankKeywords": [r.to_dict() for r in top_ten],
        "topRankKeywords": [r.to_dict() for r in agg.records_in(("1", "2", "3"))],
        "previousRankKeywords": [r.to_dict() for r in previous],
        "zeroSearchVolumeKeywords": {
            "rank": [r.to_dict() for r in zero_volume_records(agg)],
            "coverage": [e.to_dict() for e in join.zero_volume] if join else [],
        },
        "keywordCoverage": {
            "covered": [e.to_dict() for e in join.covered],
            "uncovered": [e.to_dict() for e in join.uncovered],
            "zeroSearchVolume": [e.to_dict() for e in join.zero_volume],
        } if join else None,
        "contentExplorer": content_explorer,
    }


def sanitize_analyze_payload(
    raw: Any,
    limits: Optional[PayloadLimits] = None,
) -> Optional[Dict[str, Any]]:
    """
    Validate a raw payload and apply the sanitizer caps.

    Returns None unless raw is a dict with success set to True.
    """
    if not isinstance(raw, dict) or raw.get("success") is not True:
        return None
    limits = limits or PayloadLimits.from_settings()
    model = AnalyzePayload.model_validate(raw)

    clipped = model.analysis[:limits.analysis_chars]
    model.truncated = model.truncated or len(clipped) < len(model.analysis)
    model.analysis = clipped
    model.rank_keywords = model.rank_keywords[:limits.rank_rows]
    model.top_rank_keywords = model.top_rank_keywords[:limits.top_rank_rows]
    model.previous_rank_keywords = model.previous_rank_keywords[:limits.prev_rows]

    zero = model.zero_search_volume_keywords
    zero.rank = zero.rank[:limits.zero_rows]
    zero.coverage = zero.coverage[:limits.zero_rows]

    if model.keyword_coverage is not None:
        cov = model.keyword_coverage
        cov.covered = cov.covered[:limits.coverage_rows]
        cov.uncovered = cov.uncovered[:limits.coverage_rows]
        cov.zero_search_volume = cov.zero_search_volume[:limits.zero_rows]

    if model.content_explorer is not None:
        ce = model.content_explorer
        ce.table = ce.table[:limits.explorer_table_chars]
        for name in ("difficulty_notes", "format_notes", "paa_notes", "picked_queries", "insights"):
            setattr(ce, name, getattr(ce, name)[:limits.explorer_list])

    return model.to_wire()


# ---------------------------------------------------------------------------
# Shrink steps
# ---------------------------------------------------------------------------

def _slice(container: Any, key: str, n: int) -> None:
    if isinstance(container, dict) and isinstance(container.get(key), list):
        container[key] = container[key][:n]


def _empty(container: Any, key: str) -> None:
    if isinstance(container, dict) and isinstance(container.get(key), list):
        container[key] = []


def clear_analysis(payload: Dict[str, Any], limits: ShrinkLimits) -> Dict[str, Any]:
    """Step 1: drop the narrative text and mark the payload truncated."""
    out = copy.deepcopy(payload)
    if "analysis" in out:
        out["analysis"] = ""
        out["truncated"] = True
    return out


def cap_lists(payload: Dict[str, Any], limits: ShrinkLimits) -> Dict[str, Any]:
    """Step 2: cap every list field to its shorter length."""
    out = copy.deepcopy(payload)
    _slice(out, "rankKeywords", limits.rank_rows)
    _slice(out, "topRankKeywords", limits.top_rank_rows)
    _slice(out, "previousRankKeywords", limits.prev_rows)

    zero = out.get("zeroSearchVolumeKeywords")
    _slice(zero, "rank", limits.zero_rank_rows)
    _slice(zero, "coverage", limits.zero_coverage_rows)

    coverage = out.get("keywordCoverage")
    _slice(coverage, "covered", limits.coverage_rows)
    _slice(coverage, "uncovered", limits.coverage_rows)
    _slice(coverage, "zeroSearchVolume", limits.coverage_zero_rows)

    explorer = out.get("contentExplorer")
    for key in _NOTE_LIST_KEYS:
        _slice(explorer, key, limits.note_rows)
    return out


def drop_detail(payload: Dict[str, Any], limits: ShrinkLimits) -> Dict[str, Any]:
    """Step 3: clear structured detail, keeping only scalar summary fields."""
    out = copy.deepcopy(payload)
    for key in _RANK_LIST_KEYS:
        _empty(out, key)
    zero = out.get("zeroSearchVolumeKeywords")
    _empty(zero, "rank")
    _empty(zero, "coverage")
    if out.get("keywordCoverage") is not None:
        out["keywordCoverage"] = None
    if out.get("contentExplorer") is not None:
        out["contentExplorer"] = None
    return out


ShrinkStep = Callable[[Dict[str, Any], ShrinkLimits], Dict[str, Any]]

SHRINK_STEPS: Sequence[ShrinkStep] = (clear_analysis, cap_lists, drop_detail)


def minimal_stub(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"success": payload.get("success") is True, "analysis": "", "truncated": True}


def shrink_to_fit(
    payload: Dict[str, Any],
    max_bytes: int,
    limits: Optional[ShrinkLimits] = None,
    steps: Iterable[ShrinkStep] = SHRINK_STEPS,
) -> Dict[str, Any]:
    """
    Return a copy of payload that serializes to at most max_bytes.

    Steps run in order while the payload is over budget. A step whose output
    is larger than its input is skipped, so size never grows. Falls back to
    minimal_stub() when no step gets under budget.
    """
    if not isinstance(payload, dict):
        raise TypeError(f"payload must be a dict, got {type(payload).__name__}")
    if max_bytes < 0:
        raise ValueError("max_bytes must be >= 0")
    limits = limits or ShrinkLimits.from_settings()

    current = copy.deepcopy(payload)
    size = payload_size(current)
    if size <= max_bytes:
        return current

    for step in steps:
        candidate = step(current, limits)
        candidate_size = payload_size(candidate)
        if candidate_size > size:
            log.debug(f"Shrink step {step.__name__} would grow payload ({size} -> {candidate_size}), skipped")
            continue
        log.debug(f"Shrink step {step.__name__}: {size} -> {candidate_size} bytes")
        current, size = candidate, candidate_size
        if size <= max_bytes:
            log.info(f"Payload fits after {step.__name__}: {size}/{max_bytes} bytes")
            return current

    log.info(f"Payload still {size} bytes after all shrink steps, returning stub (budget {max_bytes})")
    return minimal_stub(payload)
