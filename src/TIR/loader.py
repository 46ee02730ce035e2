"""
Read measurement tables (CSV or Excel) into Measurement records.

Expected columns after header normalization: patient_id, date, hct.
Dates become integer day counts since 1970-01-01; a numeric date column is
taken to already hold day counts. Row-level problems are reported to the
notepad and the row is skipped.
"""

import logging
import pathlib
import typing

import pandas as pd
from stairval.notepad import Notepad

from .measurement import Measurement

LOGGER = logging.getLogger(__name__)

# Column aliases → canonical names
RENAME_MAP = {
    "patient": "patient_id",
    "patientid": "patient_id",
    "subject_id": "patient_id",
    "visit_date": "date",
    "day": "date",
    "hematocrit": "hct",
}

EPOCH = pd.Timestamp("1970-01-01")


def _normalize_names(names: pd.Index) -> pd.Index:
    return (
        names.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"\s+", "_", regex=True)  # spaces → underscore
        .str.lower()
    )


def normalize_column_name(name: str) -> str:
    """Apply the header normalization rules to a single column name."""
    return _normalize_names(pd.Index([name]))[0]


def normalize_headers(df: pd.DataFrame, keep: typing.Iterable[str] = ()) -> pd.DataFrame:
    """
    Normalize all headers to snake_case lowercase, dropping any "(…)" unit
    suffix, then apply RENAME_MAP. Headers named in ``keep`` (already
    normalized) are never renamed.
    """
    keep = set(keep)
    df = df.copy()
    df.columns = _normalize_names(df.columns)
    return df.rename(
        columns={
            orig: target
            for orig, target in RENAME_MAP.items()
            if orig in df.columns and orig not in keep
        }
    )


def read_table(path: typing.Union[str, pathlib.Path]) -> pd.DataFrame:
    """Read a .csv or .xlsx file (first sheet) into a DataFrame."""
    path = pathlib.Path(path)
    if path.suffix.lower() == ".xlsx":
        return pd.read_excel(path, sheet_name=0, header=0, engine="openpyxl")
    return pd.read_csv(path)


def to_day_count(value: typing.Any) -> int:
    """
    Day count for a date-like cell:
    - numbers are day counts already (must be whole)
    - anything else is parsed as a date and counted from 1970-01-01
    """
    if value is None or pd.isna(value):
        raise ValueError("missing date")
    if isinstance(value, bool):
        raise ValueError(f"invalid date {value!r}")
    if isinstance(value, (int, float)) or pd.api.types.is_number(value):
        if float(value) != int(value):
            raise ValueError(f"day count must be whole, got {value!r}")
        return int(value)
    return (pd.Timestamp(value).normalize() - EPOCH).days


def frame_to_measurements(
    df: pd.DataFrame,
    notepad: Notepad,
    *,
    patient_column: str = "patient_id",
    date_column: str = "date",
    value_column: str = "hct",
) -> list[Measurement]:
    """Map each row of an already-normalized table to a Measurement."""
    records: list[Measurement] = []
    required_columns = {patient_column, date_column, value_column}
    missing = required_columns - set(df.columns)
    if missing:
        notepad.add_error(f"missing required columns: {sorted(missing)}")
        return records

    for index, row in df.iterrows():
        raw_patient = row[patient_column]
        if raw_patient is None or pd.isna(raw_patient):
            notepad.add_error(f"row {index}: missing patient id")
            continue
        raw_value = row[value_column]
        if raw_value is None or pd.isna(raw_value):
            notepad.add_warning(f"row {index}: patient {raw_patient!s} has no value; skipped")
            continue
        try:
            records.append(
                Measurement(
                    patient_id=str(raw_patient).strip(),
                    timestamp=to_day_count(row[date_column]),
                    value=float(raw_value),
                )
            )
        except (ValueError, TypeError) as exception:
            notepad.add_error(f"row {index}: {exception}")
    return records


def load_measurements(
    path: typing.Union[str, pathlib.Path],
    notepad: Notepad,
    *,
    patient_column: str = "patient_id",
    date_column: str = "date",
    value_column: str = "hct",
) -> list[Measurement]:
    """
    Load a measurement table from ``path``. The requested column names go
    through the same normalization as the headers, and a requested name is
    never replaced by its RENAME_MAP alias.
    """
    columns = [normalize_column_name(c) for c in (patient_column, date_column, value_column)]
    df = normalize_headers(read_table(path), keep=columns)
    LOGGER.debug("Read %d rows with columns %s from %s", len(df), list(df.columns), path)
    records = frame_to_measurements(
        df,
        notepad,
        patient_column=columns[0],
        date_column=columns[1],
        value_column=columns[2],
    )
    LOGGER.info("Loaded %d measurements from %s", len(records), path)
    return records


def measurements_frame(measurements: typing.Iterable[Measurement]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "patient_id": m.patient_id,
                "timestamp": m.timestamp,
                "value": m.value,
                "synthetic": m.synthetic,
            }
            for m in measurements
        ],
        columns=["patient_id", "timestamp", "value", "synthetic"],
    )
