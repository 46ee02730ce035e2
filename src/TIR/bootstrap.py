"""
Bootstrap resampling of patients.

Each iteration draws as many patient identifiers as there are distinct
patients, with replacement, and aggregates the intervals of the drawn
patients. Two weightings are available:

- ``membership`` (default): a patient contributes its intervals once if it
  was drawn at all, however many times it was drawn.
- ``multiplicity``: a patient contributes its intervals once per draw, as in
  a textbook bootstrap.

Every iteration gets its own generator spawned from
``numpy.random.SeedSequence(seed)``, so the samples depend only on the seed
and the iteration index, never on ``workers`` or execution order.
"""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

from .aggregator import AggregateRow, aggregate_totals, merge_totals, sum_durations
from .interval import Interval, Label

LOGGER = logging.getLogger(__name__)

WEIGHTINGS = ("membership", "multiplicity")


@dataclass(frozen=True)
class BootstrapSample:
    """
    Aggregate of one bootstrap iteration.

    Attributes:
        iteration: Zero-based iteration index.
        rows: AggregateRow per label, in reporting order.
        patients: Identifiers drawn in this iteration, in draw order.
    """

    iteration: int
    rows: dict[Label, AggregateRow]
    patients: tuple[str, ...]

    def percent(self, label: Label) -> Optional[float]:
        return self.rows[label].percent


def totals_by_patient(intervals: Iterable[Interval]) -> dict[str, dict[Label, float]]:
    """Per-label duration sums for each patient."""
    by_patient: dict[str, list[Interval]] = {}
    for interval in intervals:
        by_patient.setdefault(interval.patient_id, []).append(interval)
    return {patient_id: sum_durations(items) for patient_id, items in by_patient.items()}


def _resample(
    iteration: int,
    seed_sequence: np.random.SeedSequence,
    pool: Sequence[str],
    totals: Mapping[str, Mapping[Label, float]],
    weighting: str,
) -> BootstrapSample:
    rng = np.random.default_rng(seed_sequence)
    drawn = tuple(pool[i] for i in rng.integers(0, len(pool), size=len(pool)))

    if weighting == "membership":
        weights = {patient_id: 1 for patient_id in set(drawn)}
    else:
        weights = Counter(drawn)

    combined = merge_totals(
        {label: duration * count for label, duration in totals[patient_id].items()}
        for patient_id, count in weights.items()
        if patient_id in totals
    )
    return BootstrapSample(iteration=iteration, rows=aggregate_totals(combined), patients=drawn)


def bootstrap(
    intervals: Iterable[Interval],
    iterations: int,
    seed: int,
    *,
    patients: Optional[Sequence[str]] = None,
    weighting: str = "membership",
    workers: int = 1,
) -> list[BootstrapSample]:
    """
    Resample patients ``iterations`` times and aggregate each resample.

    Args:
        intervals: Concatenated intervals of all patients.
        iterations: Number of bootstrap iterations (N).
        seed: Seed every iteration's generator is derived from.
        patients: Identifier pool to draw from. Defaults to the sorted distinct
            patient ids of ``intervals``. Identifiers without intervals
            contribute nothing to a sample.
        weighting: 'membership' or 'multiplicity' (see module docstring).
        workers: Size of the thread pool running iterations; 1 runs inline.

    Returns:
        One BootstrapSample per iteration, ordered by iteration index.
    """
    if iterations < 0:
        raise ValueError(f"iterations must be non-negative, got {iterations!r}")
    if weighting not in WEIGHTINGS:
        raise ValueError(f"weighting must be one of {list(WEIGHTINGS)}, got {weighting!r}")

    totals = totals_by_patient(intervals)
    pool = list(patients) if patients is not None else sorted(totals)
    if not pool:
        raise ValueError("Cannot bootstrap an empty patient population")

    children = np.random.SeedSequence(seed).spawn(iterations)
    LOGGER.info(
        "Bootstrapping %d patients: %d iterations, seed=%r, weighting=%s, workers=%d",
        len(pool), iterations, seed, weighting, workers,
    )

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            samples = list(
                executor.map(
                    lambda i: _resample(i, children[i], pool, totals, weighting),
                    range(iterations),
                )
            )
    else:
        samples = [_resample(i, children[i], pool, totals, weighting) for i in range(iterations)]
    return samples
