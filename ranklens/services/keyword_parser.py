"""
Keyword entry decoder.

Reads keyword entries with embedded metrics out of bucket cells. The grammar
is fixed; entries are tried against it in this order:

    keyword(click: N, impression: N, position: N, ctr: N%)
    keyword(click: N, impression: N, position: N)
    keyword(N)                      legacy, clicks only
    keyword                         anything else, metrics unknown

Whitespace around the keyword and inside the parentheses is optional. A cell
holds several entries joined with ", ". The encoder lives in keyword_format.
"""
import re
from typing import Any, Dict, List, Optional

from ranklens.models.keyword import BUCKET_LABELS, OVERFLOW_BUCKET, KeywordRecord
from ranklens.utils.helpers import finite_or_none
from ranklens.utils.logger import log

_N = r"([\d.,]+)"
_EXTENDED_WITH_CTR = re.compile(
    r"^(.+?)\(\s*clicks?\s*:\s*" + _N + r"\s*,\s*impressions?\s*:\s*" + _N
    + r"\s*,\s*position\s*:\s*" + _N + r"\s*,\s*ctr\s*:\s*" + _N + r"\s*%?\s*\)$",
    re.IGNORECASE,
)
_EXTENDED = re.compile(
    r"^(.+?)\(\s*clicks?\s*:\s*" + _N + r"\s*,\s*impressions?\s*:\s*" + _N
    + r"\s*,\s*position\s*:\s*" + _N + r"\s*\)$",
    re.IGNORECASE,
)
_LEGACY = re.compile(r"^(.+?)\(\s*" + _N + r"\s*\)$")
_ENTRY_BOUNDARY = re.compile(r"\),\s+")

# Search-console row fields holding bucket cells, in bucket order
SEARCH_ROW_FIELDS = {label: f"current_rank_{label}" for label in BUCKET_LABELS[:-1]}
SEARCH_ROW_FIELDS[OVERFLOW_BUCKET] = "current_rank_gt10"

# Prefix on prev_best_query when the best query changed between periods
QUERY_CHANGED_MARKER = "\U0001f504"


def _capture(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return finite_or_none(float(value.replace(",", "")))
    except ValueError:
        return None


def parse_entry(fragment: Any) -> KeywordRecord:
    """
    Decode one keyword entry.

    Never raises. An empty fragment yields a record with an empty keyword;
    callers drop those.
    """
    text = "" if fragment is None else str(fragment).strip()
    if not text:
        return KeywordRecord(keyword="")

    m = _EXTENDED_WITH_CTR.match(text)
    if m:
        return KeywordRecord(
            keyword=m.group(1).strip(),
            clicks=_capture(m.group(2)),
            impressions=_capture(m.group(3)),
            rank=_capture(m.group(4)),
            ctr=_capture(m.group(5)),
        )

    m = _EXTENDED.match(text)
    if m:
        return KeywordRecord(
            keyword=m.group(1).strip(),
            clicks=_capture(m.group(2)),
            impressions=_capture(m.group(3)),
            rank=_capture(m.group(4)),
        )

    m = _LEGACY.match(text)
    if m:
        return KeywordRecord(keyword=m.group(1).strip(), clicks=_capture(m.group(2)))

    if "(" in text:
        log.debug(f"Unrecognized keyword entry, keeping keyword only: {text[:80]!r}")
        text = text[:text.index("(")]
    return KeywordRecord(keyword=text.strip())


def split_entries(raw: Any) -> List[str]:
    """
    Split a bucket cell into entry strings.

    Entries are split on "), " and get their closing parenthesis back, since a
    keyword may itself contain commas. A cell without any parenthesis is a
    plain comma-joined keyword list.
    """
    if not raw or not isinstance(raw, str):
        return []
    if "(" not in raw:
        return [part.strip() for part in raw.split(",") if part.strip()]
    parts = _ENTRY_BOUNDARY.split(raw)
    last = len(parts) - 1
    return [
        p if i == last or p.endswith(")") else f"{p})"
        for i, p in enumerate(parts)
    ]


def parse_bucket(raw: Any, label: Optional[str] = None) -> List[KeywordRecord]:
    """
    Parse one bucket cell into records, dropping keyword-less entries.

    With a numeric bucket label ("1".."10"), entries that carry no position of
    their own take the label as their rank.
    """
    label_rank = float(label) if label and label.isdigit() else None
    records = []
    for part in split_entries(raw):
        record = parse_entry(part)
        if not record.keyword:
            continue
        if record.rank is None and label_rank is not None:
            record.rank = label_rank
        records.append(record)
    return records


def records_from_search_row(row: Dict[str, Any]) -> List[KeywordRecord]:
    """Collect every keyword record from a search-console row's bucket fields."""
    if row is None:
        raise TypeError("row must be a mapping, not None")
    records: List[KeywordRecord] = []
    for label, field_name in SEARCH_ROW_FIELDS.items():
        raw = row.get(field_name)
        if raw is None and label != OVERFLOW_BUCKET:
            raw = row.get(f"rank_{label}")
        records.extend(parse_bucket(raw, label))
    return records


def prev_best_from_search_row(row: Dict[str, Any]) -> Optional[KeywordRecord]:
    """
    Previous-period best query of a search-console row, or None.

    Rows flag a changed best query with a leading QUERY_CHANGED_MARKER, which
    is not part of the keyword.
    """
    if row is None:
        raise TypeError("row must be a mapping, not None")
    keyword = str(row.get("prev_best_query") or "").strip()
    if keyword.startswith(QUERY_CHANGED_MARKER):
        keyword = keyword[len(QUERY_CHANGED_MARKER):].lstrip("\ufe0f").strip()
    if not keyword:
        return None
    return KeywordRecord(
        keyword=keyword,
        rank=row.get("prev_best_position"),
        clicks=row.get("prev_best_clicks"),
    )
