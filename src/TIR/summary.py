"""
Distribution summary of bootstrap samples: mean and standard deviation of
the per-label percent, plus histogram densities for plotting.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from .bootstrap import BootstrapSample
from .interval import Label

SUMMARY_COLUMNS = ["label", "mean", "std", "count"]


def samples_frame(samples: Sequence[BootstrapSample]) -> pd.DataFrame:
    """Long table: one row per (iteration, label)."""
    records = [
        {
            "iteration": sample.iteration,
            "label": row.label.value,
            "total_duration": row.total_duration,
            "percent": np.nan if row.percent is None else row.percent,
        }
        for sample in samples
        for row in sample.rows.values()
    ]
    return pd.DataFrame(records, columns=["iteration", "label", "total_duration", "percent"])


def summarize(samples: Sequence[BootstrapSample]) -> pd.DataFrame:
    """
    Mean and sample standard deviation (ddof=1) of percent per label.
    Iterations whose percent is undefined are left out; ``count`` is the
    number of defined values. Labels appear in reporting order.
    """
    frame = samples_frame(samples)
    rows = []
    for label in Label:
        values = frame.loc[frame["label"] == label.value, "percent"].dropna()
        rows.append(
            {
                "label": label.value,
                "mean": float(values.mean()) if len(values) else np.nan,
                "std": float(values.std(ddof=1)) if len(values) > 1 else np.nan,
                "count": int(len(values)),
            }
        )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def percent_densities(
    samples: Sequence[BootstrapSample], bins: int = 30
) -> dict[Label, tuple[np.ndarray, np.ndarray]]:
    """
    Histogram density of percent per label over [0, 1].
    Returns (density, bin_edges) per label; labels without any defined
    percent are omitted.
    """
    frame = samples_frame(samples)
    densities: dict[Label, tuple[np.ndarray, np.ndarray]] = {}
    for label in Label:
        values = frame.loc[frame["label"] == label.value, "percent"].dropna().to_numpy()
        if values.size == 0:
            continue
        densities[label] = np.histogram(values, bins=bins, range=(0.0, 1.0), density=True)
    return densities
