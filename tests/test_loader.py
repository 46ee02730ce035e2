"""
Loading measurement tables: header normalization, date conversion, and
row-level issues reported to the notepad.
"""

import pandas as pd
import pytest
from stairval.notepad import create_notepad

from TIR.loader import (
    frame_to_measurements,
    load_measurements,
    measurements_frame,
    normalize_headers,
    to_day_count,
)
from TIR.measurement import Measurement


def test_load_csv_with_iso_dates(cohort_csv):
    notepad = create_notepad("measurements")
    records = load_measurements(cohort_csv, notepad)
    assert not notepad.has_errors(include_subsections=True)
    assert len(records) == 6
    first = records[0]
    assert first.patient_id == "A"
    assert first.timestamp == (pd.Timestamp("2024-01-01") - pd.Timestamp("1970-01-01")).days
    assert records[1].timestamp - records[0].timestamp == 3
    assert first.value == pytest.approx(28.0)


def test_headers_are_normalized_and_aliased():
    df = pd.DataFrame(columns=[" Patient ID ", "Visit Date", "Hematocrit (%)"])
    assert list(normalize_headers(df).columns) == ["patient_id", "date", "hct"]


@pytest.mark.parametrize(
    "cell, expected",
    [(0, 0), (19723, 19723), (12.0, 12), ("1970-01-11", 10), (pd.Timestamp("1970-02-01 13:00"), 31)],
)
def test_to_day_count(cell, expected):
    assert to_day_count(cell) == expected


@pytest.mark.parametrize("cell", [None, float("nan"), 1.5, "not a date", True])
def test_to_day_count_rejects(cell):
    with pytest.raises(ValueError):
        to_day_count(cell)


def test_missing_columns_is_an_error():
    notepad = create_notepad("measurements")
    df = pd.DataFrame({"patient_id": ["A"], "date": [1]})
    assert frame_to_measurements(df, notepad) == []
    assert notepad.has_errors(include_subsections=True)


def test_bad_rows_are_reported_and_skipped():
    notepad = create_notepad("measurements")
    df = pd.DataFrame(
        {
            "patient_id": ["A", "A", None, "B"],
            "date": [0, "garbage", 3, 4],
            "hct": [30.0, 31.0, 29.0, None],
        }
    )
    records = frame_to_measurements(df, notepad)
    assert records == [Measurement("A", 0, 30.0)]
    assert len(list(notepad.errors())) == 2
    assert notepad.has_warnings(include_subsections=True)


def test_custom_column_names(tmp_path):
    path = tmp_path / "labs.csv"
    pd.DataFrame({"mrn": ["X1", "X1"], "day": [3, 9], "result": [30.1, 33.2]}).to_csv(path, index=False)
    notepad = create_notepad("measurements")
    records = load_measurements(path, notepad, patient_column="mrn", value_column="result")
    assert [(m.patient_id, m.timestamp, m.value) for m in records] == [("X1", 3, 30.1), ("X1", 9, 33.2)]


@pytest.mark.parametrize(
    "header, patient_column",
    [("subject_id", "subject_id"), ("MRN", "MRN"), ("Subject ID", "Subject ID"), ("mrn", "MRN")],
)
def test_requested_patient_column_survives_normalization(tmp_path, header, patient_column):
    path = tmp_path / "labs.csv"
    pd.DataFrame({header: ["S1", "S1"], "date": [0, 4], "hct": [30.0, 31.0]}).to_csv(path, index=False)
    notepad = create_notepad("measurements")
    records = load_measurements(path, notepad, patient_column=patient_column)
    assert not notepad.has_errors(include_subsections=True)
    assert [(m.patient_id, m.timestamp) for m in records] == [("S1", 0), ("S1", 4)]


def test_requested_alias_columns_are_not_renamed(tmp_path):
    path = tmp_path / "labs.csv"
    pd.DataFrame({"Day": [1, 2], "Hematocrit (%)": [29.5, 30.5], "patient": ["A", "A"]}).to_csv(
        path, index=False
    )
    notepad = create_notepad("measurements")
    records = load_measurements(path, notepad, date_column="Day", value_column="Hematocrit")
    assert [(m.patient_id, m.timestamp, m.value) for m in records] == [("A", 1, 29.5), ("A", 2, 30.5)]


def test_normalize_headers_keeps_requested_aliases():
    df = pd.DataFrame(columns=["Subject_ID", "date", "hct"])
    assert list(normalize_headers(df, keep=["subject_id"]).columns) == ["subject_id", "date", "hct"]
    assert list(normalize_headers(df).columns) == ["patient_id", "date", "hct"]


def test_load_excel_workbook(tmp_path):
    path = tmp_path / "labs.xlsx"
    df = pd.DataFrame({"patient_id": ["P1", "P1"], "date": ["2024-05-01", "2024-05-06"], "hct": [30, 31]})
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        df.to_excel(w, sheet_name="labs", index=False)
    notepad = create_notepad("measurements")
    records = load_measurements(path, notepad)
    assert [m.value for m in records] == [30.0, 31.0]
    assert records[1].timestamp - records[0].timestamp == 5


def test_measurements_frame_columns():
    frame = measurements_frame([Measurement("A", 1, 30.0), Measurement("A", 2.5, 32.0, synthetic=True)])
    assert list(frame.columns) == ["patient_id", "timestamp", "value", "synthetic"]
    assert frame["synthetic"].tolist() == [False, True]
