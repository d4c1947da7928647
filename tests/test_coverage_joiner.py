"""
Coverage join tests.

Guards against:
1. Formatting variants failing to match ("沖繩 住宿" vs "沖繩住宿")
2. Zero-volume entries dropped from the uncovered list
3. Enrichment overwriting volumes that are already known
4. Lower-volume duplicates winning an index collision
"""
import pytest

from ranklens.models.keyword import CoverageEntry, KeywordRecord
from ranklens.services.coverage_joiner import (
    build_coverage_index,
    build_coverage_prompt_parts,
    format_coverage_line,
    join_coverage,
    pick_top_keywords_by_impressions,
    pick_top_queries_by_search_volume,
    zero_volume_records,
)
from ranklens.services.rank_aggregator import aggregate


@pytest.fixture
def okinawa_agg():
    return aggregate(
        [
            KeywordRecord("沖繩 住宿", rank=2, clicks=95, impressions=1900),
            KeywordRecord("那霸美食", rank=6, clicks=12, impressions=800, search_volume=500),
        ],
        [KeywordRecord("沖繩住宿", rank=3, clicks=40)],
        page="https://example.com/tw/okinawa",
    )


def _texts(entries):
    return [e.text for e in entries]


class TestClassification:

    def test_zero_volume_uncovered_entry(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [{"text": "沖繩自由行", "searchVolume": 0}])
        assert _texts(result.uncovered) == ["沖繩自由行"]
        assert _texts(result.zero_volume) == ["沖繩自由行"]
        assert result.covered == []

    def test_zero_volume_covered_entry(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [CoverageEntry("那霸美食", search_volume=0)])
        assert _texts(result.covered) == ["那霸美食"]
        assert _texts(result.zero_volume) == ["那霸美食"]

    def test_normalized_match(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [CoverageEntry("沖繩住宿", search_volume=1300)])
        assert _texts(result.covered) == ["沖繩住宿"]
        assert result.uncovered == []

    def test_spelling_variant_does_not_match(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [CoverageEntry("沖绳住宿", search_volume=10)])
        assert _texts(result.uncovered) == ["沖绳住宿"]

    def test_unknown_volume_is_not_zero_volume(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [CoverageEntry("石垣島")])
        assert result.zero_volume == []

    def test_unsupported_item_type(self, okinawa_agg):
        with pytest.raises(TypeError):
            join_coverage(okinawa_agg, ["沖繩住宿"])


class TestEnrichment:

    def test_fills_missing_volume_on_current_and_previous(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [CoverageEntry("沖繩住宿", search_volume=1300)])
        assert okinawa_agg.records[0].search_volume == 1300
        assert okinawa_agg.prev_records[0].search_volume == 1300
        assert result.enriched == 2

    def test_known_volume_is_kept(self, okinawa_agg):
        join_coverage(okinawa_agg, [CoverageEntry("那霸美食", search_volume=9999)])
        assert okinawa_agg.records[1].search_volume == 500

    def test_second_run_changes_nothing(self, okinawa_agg):
        coverage = [CoverageEntry("沖繩住宿", search_volume=1300)]
        join_coverage(okinawa_agg, coverage)
        again = join_coverage(okinawa_agg, coverage)
        assert again.enriched == 0
        assert okinawa_agg.records[0].search_volume == 1300

    def test_unknown_entry_volume_does_not_enrich(self, okinawa_agg):
        result = join_coverage(okinawa_agg, [CoverageEntry("沖繩住宿")])
        assert result.enriched == 0
        assert okinawa_agg.records[0].search_volume is None

    def test_totals_are_untouched(self, okinawa_agg):
        before = okinawa_agg.totals
        join_coverage(okinawa_agg, [CoverageEntry("沖繩住宿", search_volume=1300)])
        assert okinawa_agg.totals == before


class TestIndex:

    def test_higher_volume_wins_collision(self):
        index = build_coverage_index([
            CoverageEntry("沖繩 住宿", search_volume=100),
            CoverageEntry("沖繩住宿", search_volume=1300),
            CoverageEntry("沖繩住宿!", search_volume=50),
        ])
        assert len(index) == 1
        assert index["沖繩住宿"].search_volume == 1300

    def test_unknown_volume_loses(self):
        index = build_coverage_index([CoverageEntry("a"), CoverageEntry("A", search_volume=0)])
        assert index["a"].search_volume == 0

    def test_entries_without_key_are_skipped(self):
        assert build_coverage_index([CoverageEntry("  "), CoverageEntry("。")]) == {}

    def test_dict_shape(self):
        index = build_coverage_index([
            {"text": "京都", "searchVolume": 720, "gsc": {"clicks": 3, "impressions": 90, "avgPosition": 8.25}},
        ])
        entry = index["京都"]
        assert entry.gsc_clicks == 3
        assert entry.gsc_avg_position == 8.25


def test_zero_volume_records(okinawa_agg):
    okinawa_agg.records[1].search_volume = 0
    assert [r.keyword for r in zero_volume_records(okinawa_agg)] == ["那霸美食"]


class TestPromptParts:

    def test_lines(self):
        covered = [CoverageEntry("京都", search_volume=720, gsc_clicks=3, gsc_impressions=90, gsc_avg_position=8.25)]
        uncovered = [CoverageEntry("大阪", search_volume=None)]
        covered_text, uncovered_text = build_coverage_prompt_parts(covered, uncovered)
        assert covered_text == "京都 (SV: 720, Clicks: 3, Imp: 90, Pos: 8.2)"
        assert uncovered_text == "大阪 (SV: N/A)"

    def test_covered_without_gsc(self):
        assert format_coverage_line(CoverageEntry("京都", search_volume=720)) == "京都 (SV: 720)"

    def test_empty_lists(self):
        assert build_coverage_prompt_parts([], []) == ("無", "無")
        assert build_coverage_prompt_parts([], [], empty_text="none") == ("none", "none")


def test_top_queries_by_search_volume():
    entries = [
        CoverageEntry("a", search_volume=10),
        CoverageEntry("b", search_volume=300),
        CoverageEntry("c", search_volume=0),
        CoverageEntry("d"),
        CoverageEntry("e", search_volume=50),
        CoverageEntry("f", search_volume=20),
    ]
    assert pick_top_queries_by_search_volume(entries) == ["b", "e", "f"]
    assert pick_top_queries_by_search_volume(entries, limit=1) == ["b"]


def test_top_keywords_by_impressions_collapses_variants():
    records = [
        KeywordRecord("沖繩 住宿", impressions=100),
        KeywordRecord("沖繩住宿", impressions=1900),
        KeywordRecord("那霸", impressions=800),
        KeywordRecord("石垣島", impressions=50),
        KeywordRecord("宮古島", impressions=60),
    ]
    assert pick_top_keywords_by_impressions(records) == ["沖繩住宿", "那霸", "宮古島"]
