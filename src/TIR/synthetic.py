"""
Synthetic hematocrit cohort in the loader's schema (patient_id, date, hct).

All randomness comes from the numpy Generator passed in, so a cohort is
reproduced exactly by reseeding.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

LOGGER = logging.getLogger(__name__)


def simulate_patient(
    patient_id: str,
    rng: np.random.Generator,
    *,
    visits: tuple[int, int] = (2, 12),
    mean_gap: float = 10.0,
    baseline: float = 30.5,
    spread: float = 2.0,
    drift: float = 0.6,
    start: str = "2020-01-01",
) -> pd.DataFrame:
    """
    One patient's visits: exponential gaps (whole days, at least 1) and a
    random walk around a patient-specific level.
    """
    n_visits = int(rng.integers(visits[0], visits[1] + 1))
    gaps = np.maximum(1, np.rint(rng.exponential(mean_gap, size=n_visits - 1))).astype(int)
    days = np.concatenate([[0], np.cumsum(gaps)])
    level = rng.normal(baseline, spread)
    walk = level + np.cumsum(rng.normal(0.0, drift, size=n_visits))
    dates = pd.Timestamp(start) + pd.to_timedelta(days, unit="D")
    return pd.DataFrame(
        {
            "patient_id": patient_id,
            "date": dates.strftime("%Y-%m-%d"),
            "hct": np.round(walk, 1),
        }
    )


def simulate_cohort(
    n_patients: int,
    rng: np.random.Generator,
    *,
    visits: tuple[int, int] = (2, 12),
    mean_gap: float = 10.0,
    baseline: float = 30.5,
    spread: float = 2.0,
    drift: float = 0.6,
    start: str = "2020-01-01",
) -> pd.DataFrame:
    """Concatenate ``n_patients`` simulated patients with ids P001, P002, …"""
    if n_patients < 1:
        raise ValueError(f"n_patients must be positive, got {n_patients!r}")
    if not 1 <= visits[0] <= visits[1]:
        raise ValueError(f"visits must be an increasing (min, max) pair, got {visits!r}")
    width = max(3, len(str(n_patients)))
    frames = [
        simulate_patient(
            f"P{index:0{width}d}",
            rng,
            visits=visits,
            mean_gap=mean_gap,
            baseline=baseline,
            spread=spread,
            drift=drift,
            start=start,
        )
        for index in range(1, n_patients + 1)
    ]
    cohort = pd.concat(frames, ignore_index=True)
    LOGGER.info("Simulated %d patients with %d visits", n_patients, len(cohort))
    return cohort
