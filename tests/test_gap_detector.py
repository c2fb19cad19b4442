"""
Unit tests for gap detection
"""

import pytest

from src.services.reconciliation.gap_detector import detect_gaps, expand_range, format_range


def test_empty_set_is_one_range():
    report = detect_gaps(set(), 5)

    assert report.missing_ids == [1, 2, 3, 4, 5]
    assert report.missing_ranges == ["1-5"]
    assert report.existing_count == 0
    assert report.first_missing == 1
    assert report.percent_complete == 0.0


def test_full_range_has_no_gaps():
    report = detect_gaps({1, 2, 3, 4, 5}, 5)

    assert report.missing_ids == []
    assert report.missing_ranges == []
    assert report.first_missing is None
    assert report.percent_complete == 100.0


def test_single_id_ranges():
    report = detect_gaps({2, 4}, 5)

    assert report.missing_ids == [1, 3, 5]
    assert report.missing_ranges == ["#1", "#3", "#5"]
    assert report.percent_complete == 40.0


def test_mixed_runs():
    report = detect_gaps([1, 2, 6, 10], 12)

    assert report.missing_ranges == ["3-5", "7-9", "11-12"]
    assert report.missing_count == 8


def test_ids_outside_range_are_ignored():
    report = detect_gaps({0, 1, 2, 7, 99}, 3)

    assert report.existing_count == 2
    assert report.missing_ids == [3]
    assert report.out_of_range_count == 3


def test_duplicates_ignored():
    report = detect_gaps([1, 1, 1, 3], 3)

    assert report.existing_count == 2
    assert report.missing_ranges == ["#2"]


def test_zero_upper_bound():
    report = detect_gaps({1, 2}, 0)

    assert report.missing_ids == []
    assert report.total_checked == 0
    assert report.percent_complete == 100.0


def test_negative_upper_bound_rejected():
    with pytest.raises(ValueError):
        detect_gaps({1}, -1)


def test_percent_rounded_to_two_decimals():
    report = detect_gaps({1}, 3)
    assert report.percent_complete == 33.33


@pytest.mark.parametrize("existing,upper_bound", [
    ({1, 3, 4, 8, 9, 15}, 20),
    (set(range(1, 101, 3)), 100),
    ({5}, 5),
])
def test_count_identity_and_ranges_cover_missing(existing, upper_bound):
    report = detect_gaps(existing, upper_bound)

    assert report.existing_count + report.missing_count == upper_bound

    expanded = [token_id for label in report.missing_ranges for token_id in expand_range(label)]
    assert expanded == report.missing_ids


def test_format_range():
    assert format_range(7, 7) == "#7"
    assert format_range(3, 9) == "3-9"
