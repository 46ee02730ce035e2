import pandas as pd
import pytest

from TIR.measurement import Measurement
from TIR.policy import Policy, TargetRange


@pytest.fixture(scope="session")
def target_range() -> TargetRange:
    """
    Hematocrit target band [29, 32].
    """
    return TargetRange(low=29.0, high=32.0)


@pytest.fixture(scope="session")
def policy() -> Policy:
    """
    Interpolate gaps shorter than a week, carry values forward for a week.
    """
    return Policy(interp_limit=7, carry_forward=7)


@pytest.fixture(scope="session")
def make_series():
    """
    Factory: make_series("P1", (0, 30.0), (5, 31.0)) -> list[Measurement].
    """
    def _make(patient_id, *points):
        return [Measurement(patient_id=patient_id, timestamp=t, value=v) for t, v in points]

    return _make


@pytest.fixture(scope="session")
def equal_span_cohort(make_series) -> list[Measurement]:
    """
    20 patients, each seen on day 0 and day 5, so every patient spans
    exactly 12 days under the default policy but with a different share of
    time above/within/below the band.
    """
    measurements = []
    for index in range(20):
        first = 26.0 + 0.45 * index
        last = 35.0 - 0.4 * index
        measurements.extend(make_series(f"P{index:02d}", (0, first), (5, last)))
    return measurements


@pytest.fixture
def cohort_csv(tmp_path) -> str:
    """
    A small CSV in the loader's schema with three patients.
    """
    df = pd.DataFrame(
        {
            "patient_id": ["A", "A", "A", "B", "B", "C"],
            "date": ["2024-01-01", "2024-01-04", "2024-01-30", "2024-02-01", "2024-02-03", "2024-03-01"],
            "hct": [28.0, 33.0, 30.5, 30.0, 31.0, 35.0],
        }
    )
    path = tmp_path / "cohort.csv"
    df.to_csv(path, index=False)
    return str(path)
