"""
Reduce intervals to total duration and share of time per label.

``percent`` is a fraction of the aggregated total (0.0 - 1.0). When the total
is zero (no intervals, or only zero-length ones) it is ``None``: "no data" is
reported as undefined rather than as 0% in every label.
"""

from __future__ import annotations

import math
import typing
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping

import pandas as pd

from .interval import Interval, Label


@dataclass(frozen=True)
class AggregateRow:
    """
    Aggregated time for one label.

    Attributes:
        label: The label aggregated.
        total_duration: Sum of the label's interval durations (days).
        percent: total_duration divided by the total over all labels, or None
            when that total is zero.
    """

    label: Label
    total_duration: float
    percent: typing.Optional[float]


def sum_durations(intervals: Iterable[Interval]) -> dict[Label, float]:
    """Per-label sums; every label is present, in reporting order."""
    parts: dict[Label, list[float]] = defaultdict(list)
    for interval in intervals:
        parts[interval.label].append(interval.duration)
    return {label: math.fsum(parts[label]) for label in Label}


def merge_totals(partials: Iterable[Mapping[Label, float]]) -> dict[Label, float]:
    """Merge partial per-label sums (e.g. one per patient) into one."""
    parts: dict[Label, list[float]] = defaultdict(list)
    for partial in partials:
        for label, duration in partial.items():
            parts[label].append(duration)
    return {label: math.fsum(parts[label]) for label in Label}


def aggregate_totals(totals: Mapping[Label, float]) -> dict[Label, AggregateRow]:
    """Turn per-label sums into AggregateRows."""
    grand_total = math.fsum(totals.get(label, 0.0) for label in Label)
    rows: dict[Label, AggregateRow] = {}
    for label in Label:
        duration = totals.get(label, 0.0)
        rows[label] = AggregateRow(
            label=label,
            total_duration=duration,
            percent=duration / grand_total if grand_total > 0 else None,
        )
    return rows


def aggregate(intervals: Iterable[Interval]) -> dict[Label, AggregateRow]:
    """
    Total duration and percent per label over any collection of intervals
    (one patient or many). The input is not modified.
    """
    return aggregate_totals(sum_durations(intervals))


def rows_to_frame(rows: Mapping[Label, AggregateRow]) -> pd.DataFrame:
    """One row per label with columns label, total_duration, percent."""
    return pd.DataFrame(
        [
            {
                "label": row.label.value,
                "total_duration": row.total_duration,
                "percent": row.percent,
            }
            for row in rows.values()
        ],
        columns=["label", "total_duration", "percent"],
    )


def aggregate_table(intervals: Iterable[Interval]) -> pd.DataFrame:
    return rows_to_frame(aggregate(intervals))
