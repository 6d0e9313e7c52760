"""
Tests for storeshift.utils.time_intervals – parsing, half-open overlap, durations.
Pure functions, no DB.
"""
from datetime import time

import pytest

from storeshift.utils.time_intervals import (
    to_minutes, parse_time, format_time, overlaps, contains, duration_hours,
)


# ── to_minutes / parse_time ───────────────────────────────────────────────────

def test_to_minutes_accepts_strings_and_times():
    assert to_minutes("00:00") == 0
    assert to_minutes("09:30") == 570
    assert to_minutes("23:59") == 1439
    assert to_minutes("14:00:00") == 840
    assert to_minutes(time(8, 15)) == 495


@pytest.mark.parametrize("raw", ["24:00", "9", "ab:cd", "12:60", "", "-1:00", "10:00:00:00"])
def test_to_minutes_rejects_malformed(raw):
    with pytest.raises(ValueError):
        to_minutes(raw)


def test_to_minutes_rejects_non_strings():
    with pytest.raises(ValueError):
        to_minutes(900)


def test_parse_time_returns_none_instead_of_raising():
    assert parse_time("07:45") == time(7, 45)
    assert parse_time("25:00") is None
    assert parse_time(None) is None


def test_format_time_pads():
    assert format_time(time(7, 5)) == "07:05"


# ── overlaps / contains ───────────────────────────────────────────────────────

def test_overlap_is_symmetric():
    a, b = (540, 720), (660, 900)
    assert overlaps(*a, *b) and overlaps(*b, *a)


def test_touching_intervals_do_not_overlap():
    """[09:00, 10:00) and [10:00, 11:00) share only the boundary → no overlap."""
    assert not overlaps(540, 600, 600, 660)
    assert not overlaps(600, 660, 540, 600)


def test_nested_interval_overlaps():
    assert overlaps(540, 1200, 600, 660)


def test_contains_is_inclusive_at_both_ends():
    assert contains(540, 1200, 540, 1200)
    assert contains(540, 1200, 600, 660)
    assert not contains(540, 1200, 480, 720)
    assert not contains(540, 1200, 1140, 1260)


# ── duration_hours ────────────────────────────────────────────────────────────

def test_duration_is_exact():
    assert duration_hours("09:00", "17:30") == 8.5
    assert duration_hours(time(14, 0), time(14, 45)) == 0.75
