"""
Rank Export Import

Reads a rank-tracker keyword export (one row per keyword and URL), groups it
by URL and turns each group into current- and previous-period keyword
records for the rank aggregator.

Headers are matched case-insensitively; unknown columns are ignored.
"""
import io
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd

from ranklens.models.keyword import KeywordRecord, PageAggregate
from ranklens.services.rank_aggregator import aggregate
from ranklens.utils.cache import KeywordKeyCache
from ranklens.utils.logger import log

# ── Column mapping ───────────────────────────────────────────────────
# Keys are normalised header strings (lowercase, stripped, single spaces).

RANK_EXPORT_COLUMN_MAP = {
    "keyword": "keyword",
    "country": "country",
    "location": "location",
    "volume": "volume",
    "current position": "position",
    "current organic traffic": "traffic",
    "previous position": "prev_position",
    "previous organic traffic": "prev_traffic",
    "current url": "url",
    "current url inside": "url_inside",
}


class RankExportError(ValueError):
    """The export cannot be grouped by page."""


def _normalize_header(header: str) -> str:
    s = str(header).strip().lower()
    s = re.sub(r"\s+", " ", s)
    return s


def _clean_str(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def _parse_int(value) -> Optional[int]:
    s = _clean_str(value).replace(",", "").replace(" ", "")
    if not s or s == "--":
        return None
    try:
        return int(float(s))
    except (ValueError, TypeError):
        return None


def _parse_float(value) -> Optional[float]:
    s = _clean_str(value).replace(",", "").replace(" ", "")
    if not s or s == "--":
        return None
    try:
        return float(s)
    except (ValueError, TypeError):
        return None


def read_rank_export(source: Union[str, Path, io.IOBase]) -> pd.DataFrame:
    """
    Load an export CSV and rename known columns to internal names.

    source is a path or an open text buffer. All cells are read as strings.
    """
    df = pd.read_csv(source, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    rename = {}
    for raw in df.columns:
        norm = _normalize_header(raw)
        if norm in RANK_EXPORT_COLUMN_MAP:
            rename[raw] = RANK_EXPORT_COLUMN_MAP[norm]
    df = df.rename(columns=rename)
    log.info(f"Loaded rank export: {len(df)} rows, columns {sorted(rename.values())}")
    return df


def group_rows_by_url(df: pd.DataFrame) -> Dict[str, List[Dict[str, Any]]]:
    """Group rows by current URL (falling back to the inside URL), first-seen order."""
    if "url" not in df.columns and "url_inside" not in df.columns:
        raise RankExportError("Rank export has no 'Current URL' or 'Current URL inside' column")

    groups: Dict[str, List[Dict[str, Any]]] = {}
    skipped = 0
    for row in df.to_dict(orient="records"):
        url = _clean_str(row.get("url")) or _clean_str(row.get("url_inside"))
        if not url:
            skipped += 1
            continue
        groups.setdefault(url, []).append(row)
    if skipped:
        log.debug(f"Skipped {skipped} export rows without a URL")
    return groups


def records_from_export_rows(
    rows: List[Dict[str, Any]],
) -> Tuple[List[KeywordRecord], List[KeywordRecord]]:
    """Split export rows into (current, previous) period records."""
    current: List[KeywordRecord] = []
    previous: List[KeywordRecord] = []
    for row in rows:
        keyword = _clean_str(row.get("keyword"))
        if not keyword:
            continue
        country = _clean_str(row.get("country")) or _clean_str(row.get("location")) or None
        volume = _parse_int(row.get("volume"))
        current.append(KeywordRecord(
            keyword=keyword,
            rank=_parse_float(row.get("position")),
            clicks=_parse_int(row.get("traffic")),
            search_volume=volume,
            country=country,
        ))
        prev_rank = _parse_float(row.get("prev_position"))
        prev_clicks = _parse_int(row.get("prev_traffic"))
        if prev_rank is not None or prev_clicks is not None:
            previous.append(KeywordRecord(
                keyword=keyword,
                rank=prev_rank,
                clicks=prev_clicks,
                search_volume=volume,
                country=country,
            ))
    return current, previous


def aggregate_rank_export(df: pd.DataFrame) -> List[PageAggregate]:
    """Aggregate every URL in the export, highest potential traffic first."""
    results = []
    for url, rows in group_rows_by_url(df).items():
        current, previous = records_from_export_rows(rows)
        # Cache scoped to this page only
        results.append(aggregate(current, previous, page=url, cache=KeywordKeyCache()))
    results.sort(key=lambda a: a.totals.potential_traffic, reverse=True)
    log.info(f"Aggregated {len(results)} pages from rank export")
    return results
