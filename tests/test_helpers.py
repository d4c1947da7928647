"""
Number parsing, region metadata and settings tests.
"""
import math

import pytest

from ranklens.config import Settings
from ranklens.services.budgeted_serializer import PayloadLimits, ShrinkLimits
from ranklens.utils.helpers import (
    format_ratio,
    parse_human_number,
    round_half_up,
    to_count_or_none,
    to_number_or_none,
)
from ranklens.utils.url_parsing import (
    infer_region_from_url,
    normalize_region_code,
    region_candidates,
)


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

class TestToNumberOrNone:

    @pytest.mark.parametrize("value,expected", [
        (12, 12),
        (4.5, 4.5),
        ("1,200", 1200),
        (" 7.5 ", 7.5),
        ("-3", -3),
        ("約 300 次", 300),
        ("20+", 20),
        ("+5", 5),
    ])
    def test_parses(self, value, expected):
        assert to_number_or_none(value) == expected

    @pytest.mark.parametrize("value", [None, "", "N/A", "n/a", "--x", "abc", math.nan, math.inf, True])
    def test_none(self, value):
        assert to_number_or_none(value) is None


@pytest.mark.parametrize("value,expected", [
    ("3.7M", 3_700_000),
    ("146.5K", 146_500),
    ("20+", 20),
    ("880", 880),
    ("1,300", 1300),
    ("N/A", None),
    ("", None),
    (None, None),
])
def test_parse_human_number(value, expected):
    assert parse_human_number(value) == expected


def test_format_ratio():
    assert format_ratio(1, 8) == "12.5%"
    assert format_ratio(2, 3) == "66.7%"
    assert format_ratio(0, 0) is None


@pytest.mark.parametrize("value,expected", [(0.5, 1), (1.49, 1), (2.5, 3), (3.5, 4), (9.5, 10)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------

class TestRegions:

    @pytest.mark.parametrize("label,code", [
        ("HK", "hk"),
        ("Hong Kong", "hk"),
        (" taiwan ", "tw"),
        ("Singapore", "sg"),
        ("Malaysia", "my"),
        ("Mainland China", "cn"),
        ("Japan", None),
        (None, None),
    ])
    def test_normalize(self, label, code):
        assert normalize_region_code(label) == code

    def test_url_segments(self):
        assert infer_region_from_url("https://holidaysmart.io/TW/article/9") == "tw"
        assert infer_region_from_url("https://holidaysmart.io/article/9") is None
        assert infer_region_from_url(None) is None

    def test_candidates_are_distinct_and_ordered(self):
        assert region_candidates("https://x.io/hk/a", ["Taiwan", None, "tw", "Singapore"]) == ["tw", "sg", "hk"]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def test_limits_follow_settings():
    settings = Settings(max_rank_rows=5, max_top_rank_rows=8, shrink_rank_rows=3, log_to_file=False)
    assert PayloadLimits.from_settings(settings).rank_rows == 5
    assert PayloadLimits.from_settings(settings).top_rank_rows == 5
    assert ShrinkLimits.from_settings(settings).rank_rows == 3


def test_default_limits_match_settings_defaults():
    settings = Settings(log_to_file=False)
    assert PayloadLimits.from_settings(settings) == PayloadLimits()
    assert ShrinkLimits.from_settings(settings) == ShrinkLimits()


@pytest.mark.parametrize("value,expected", [(95.0, 95), ("1,300", 1300), ("20+", 20), (12.6, 13), ("N/A", None)])
def test_to_count_or_none(value, expected):
    result = to_count_or_none(value)
    assert result == expected
    assert result is None or type(result) is int
