"""
Rank export import tests.

Guards against:
1. Rows without a current URL being dropped instead of using the inside URL
2. Previous-period records created for keywords with no previous data
3. Thousands separators and "--" placeholders breaking number parsing
"""
import io

import pandas as pd
import pytest

from ranklens.services.rank_aggregator import page_row
from ranklens.services.rank_export import (
    RankExportError,
    aggregate_rank_export,
    group_rows_by_url,
    read_rank_export,
    records_from_export_rows,
)

EXPORT_CSV = """\
Keyword,Country,Volume,Current position,Current organic traffic,Previous position,Previous organic traffic,Current URL,Current URL inside
沖繩住宿,Taiwan,1300,2,95,3,40,https://example.com/okinawa,
沖繩自由行,Taiwan,"2,400",5.4,30,,,https://example.com/okinawa,
石垣島,Taiwan,--,14,2,12,1,https://example.com/okinawa,
東京美食,Taiwan,720,7,20,,,,https://example.com/tokyo
沒有網址,Taiwan,10,3,5,,,,
"""


@pytest.fixture
def export_df():
    return read_rank_export(io.StringIO(EXPORT_CSV))


class TestRead:

    def test_columns_are_renamed(self, export_df):
        assert {"keyword", "country", "volume", "position", "traffic", "url", "url_inside"} <= set(export_df.columns)
        assert len(export_df) == 5

    def test_header_matching_ignores_case_and_spacing(self):
        df = read_rank_export(io.StringIO("KEYWORD,  current   URL ,Extra\na,https://example.com/a,x\n"))
        assert "keyword" in df.columns
        assert "url" in df.columns
        assert "Extra" in df.columns


class TestGrouping:

    def test_groups_by_url_with_inside_fallback(self, export_df):
        groups = group_rows_by_url(export_df)
        assert list(groups) == ["https://example.com/okinawa", "https://example.com/tokyo"]
        assert len(groups["https://example.com/okinawa"]) == 3

    def test_missing_url_columns(self):
        with pytest.raises(RankExportError):
            group_rows_by_url(pd.DataFrame({"keyword": ["a"]}))


class TestRecords:

    def test_current_and_previous(self, export_df):
        rows = group_rows_by_url(export_df)["https://example.com/okinawa"]
        current, previous = records_from_export_rows(rows)
        assert [r.keyword for r in current] == ["沖繩住宿", "沖繩自由行", "石垣島"]
        assert [r.keyword for r in previous] == ["沖繩住宿", "石垣島"]
        assert previous[0].clicks == 40
        assert previous[0].rank == 3

    def test_number_parsing(self, export_df):
        rows = group_rows_by_url(export_df)["https://example.com/okinawa"]
        current, _ = records_from_export_rows(rows)
        assert current[1].search_volume == 2400
        assert current[1].rank == 5.4
        assert current[2].search_volume is None
        assert current[0].impressions is None
        assert current[0].country == "Taiwan"

    def test_rows_without_keyword_are_skipped(self):
        current, previous = records_from_export_rows([{"keyword": " ", "position": "1"}])
        assert current == [] and previous == []


def test_aggregate_rank_export(export_df):
    pages = aggregate_rank_export(export_df)
    assert [p.page for p in pages] == ["https://example.com/okinawa", "https://example.com/tokyo"]

    okinawa, tokyo = pages
    assert okinawa.totals.potential_traffic == 30
    assert okinawa.totals.total_clicks == 127
    assert okinawa.best_query.keyword == "沖繩住宿"
    assert okinawa.prev_best_query.keyword == "沖繩住宿"
    assert okinawa.prev_best_query.clicks == 40
    assert okinawa.region_code == "tw"
    assert tokyo.totals.potential_traffic == 20
    assert tokyo.best_query.keyword == "東京美食"


def test_page_row_for_export_pages(export_df):
    okinawa = aggregate_rank_export(export_df)[0]
    row = page_row(okinawa)
    assert row["current_rank_2"] == "沖繩住宿(click: 95, impression: 0, position: 2.0)"
    assert row["best_query_volume"] == 1300
    assert row["rank_items_1to10"][0] == "沖繩住宿 (SV: 1300, Clicks: 95, Pos: 2.0)"
