import pytest

from TIR.aggregator import (
    aggregate,
    aggregate_table,
    aggregate_totals,
    merge_totals,
    sum_durations,
)
from TIR.interval import Interval, Label, Source
from TIR.segmenter import segment


def test_single_patient_all_in_target(make_series, target_range, policy):
    rows = aggregate(segment(make_series("P1", (0, 30.0), (5, 31.0)), target_range, policy))
    assert rows[Label.TARGET].total_duration == pytest.approx(12)
    assert rows[Label.TARGET].percent == pytest.approx(1.0)
    for label in (Label.ABOVE, Label.BELOW, Label.MISSING):
        assert rows[label].total_duration == 0
        assert rows[label].percent == 0


def test_rows_cover_every_label_in_reporting_order():
    rows = aggregate([Interval("P1", 2.0, Label.BELOW)])
    assert list(rows) == [Label.ABOVE, Label.TARGET, Label.BELOW, Label.MISSING]
    assert all(rows[label].label is label for label in rows)


def test_percent_is_share_of_all_time():
    intervals = [
        Interval("P1", 3.0, Label.ABOVE),
        Interval("P1", 1.0, Label.TARGET),
        Interval("P2", 4.0, Label.MISSING, source=Source.MISSING),
    ]
    rows = aggregate(intervals)
    assert rows[Label.ABOVE].percent == pytest.approx(3 / 8)
    assert rows[Label.TARGET].percent == pytest.approx(1 / 8)
    assert rows[Label.MISSING].percent == pytest.approx(4 / 8)
    assert sum(row.percent for row in rows.values()) == pytest.approx(1.0)


def test_empty_input_reports_undefined_percent():
    rows = aggregate([])
    for row in rows.values():
        assert row.total_duration == 0
        assert row.percent is None


def test_zero_length_input_reports_undefined_percent():
    rows = aggregate([Interval("P1", 0.0, Label.MISSING, source=Source.MISSING)])
    assert all(row.percent is None for row in rows.values())


def test_input_is_not_modified():
    intervals = [Interval("P1", 3.0, Label.ABOVE), Interval("P1", 1.0, Label.TARGET)]
    before = list(intervals)
    aggregate(intervals)
    assert intervals == before


def test_merged_partials_match_single_pass(make_series, target_range, policy):
    first = segment(make_series("P1", (0, 27.0), (4, 35.0)), target_range, policy)
    second = segment(make_series("P2", (0, 30.0), (30, 28.0)), target_range, policy)
    merged = merge_totals([sum_durations(first), sum_durations(second)])
    assert merged == pytest.approx(sum_durations(first + second))
    assert aggregate_totals(merged)[Label.BELOW].percent == pytest.approx(
        aggregate(first + second)[Label.BELOW].percent
    )


def test_aggregate_table_columns():
    frame = aggregate_table([Interval("P1", 2.0, Label.TARGET)])
    assert list(frame.columns) == ["label", "total_duration", "percent"]
    assert list(frame["label"]) == ["above", "target", "below", "missing"]
    assert frame.loc[frame["label"] == "target", "percent"].item() == pytest.approx(1.0)
