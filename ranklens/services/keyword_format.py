"""
Keyword entry encoder.

Renders records back into the bucket-cell grammar read by keyword_parser and
into the human-readable lines used in prompts and reports.
"""
from typing import Iterable, List, Optional

from ranklens.models.keyword import KeywordRecord


def _compact(value: float) -> str:
    """12.0 -> '12', 5.25 -> '5.2'."""
    rounded = round(value, 1)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.1f}"


def format_entry(record: KeywordRecord) -> str:
    """Render one bucket entry: keyword(click: C, impression: I, position: P.P[, ctr: X.X%])."""
    entry = (
        f"{record.keyword.strip() or '(N/A)'}("
        f"click: {int(record.clicks or 0)}, "
        f"impression: {int(record.impressions or 0)}, "
        f"position: {(record.rank or 0):.1f}"
    )
    if record.ctr is not None:
        entry += f", ctr: {record.ctr:.1f}%"
    return entry + ")"


def format_bucket(records: Iterable[KeywordRecord]) -> Optional[str]:
    """Join entries for one bucket cell, None when the bucket is empty."""
    entries = [format_entry(r) for r in records]
    return ", ".join(entries) or None


def format_keyword_line(record: KeywordRecord) -> str:
    """keyword (rank: X, clicks: Y, SV: Z), leaving out unknown metrics."""
    metrics = []
    if record.rank is not None:
        metrics.append(f"rank: {_compact(record.rank)}")
    if record.clicks is not None:
        metrics.append(f"clicks: {_compact(record.clicks)}")
    if record.search_volume is not None:
        metrics.append(f"SV: {_compact(record.search_volume)}")
    if not metrics:
        return record.keyword
    return f"{record.keyword} ({', '.join(metrics)})"


def format_rank_item(record: KeywordRecord) -> str:
    """keyword (SV: v, Clicks: c, Pos: p) for the ranked 1-10 list."""
    return (
        f"{record.keyword} (SV: {int(record.search_volume or 0)}, "
        f"Clicks: {int(record.clicks or 0)}, Pos: {(record.rank or 0):.1f})"
    )


def format_keyword_lines(records: Iterable[KeywordRecord], prefix: str = "- ") -> List[str]:
    return [f"{prefix}{format_keyword_line(r)}" for r in records]
