"""
Per-patient segmentation of a measurement series into labeled intervals.

High-level flow for one patient
-------------------------------
1) Sort visits by day (ties keep their input order).
2) Wherever two neighbouring visits are closer than ``interp_limit`` and the
   straight line between them crosses ``low`` or ``high``, insert a synthetic
   point at the crossing. Repeat until a pass finds no new crossing, so a
   single gap that jumps from below the band to above it gets both points.
3) Label every interpolated sub-interval from its two endpoint values
   (precedence above > target > below).
4) A visit followed by a gap of at least ``interp_limit`` days, and the last
   visit, carry their own label forward for ``carry_forward`` days.
5) Whatever is left of the observation span
   ``(last - first) + carry_forward`` is booked as missing time.

The sum of the durations returned for a patient always equals that span.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from itertools import pairwise
from typing import Iterable, Optional, Sequence

from stairval.notepad import Notepad

from .interval import Interval, Label, Source
from .measurement import Measurement
from .policy import Policy, TargetRange

LOGGER = logging.getLogger(__name__)

# Relative slack allowed for float noise when balancing the observation span.
_SPAN_TOLERANCE = 1e-9


class SegmentationError(RuntimeError):
    """Raised when one patient's series cannot be segmented."""

    def __init__(self, patient_id: str, message: str):
        super().__init__(f"Patient {patient_id!r}: {message}")
        self.patient_id = patient_id


def classify_value(value: float, target_range: TargetRange) -> Label:
    """Label of a single value: above, target or below."""
    if value > target_range.high:
        return Label.ABOVE
    if value < target_range.low:
        return Label.BELOW
    return Label.TARGET


def classify_pair(start_value: float, end_value: float, target_range: TargetRange) -> Label:
    """
    Label of the interpolated line between two values.

    Precedence is above > target > below. Once all crossings are inserted a
    pair never has one end above the band and the other below it.
    """
    if start_value > target_range.high or end_value > target_range.high:
        return Label.ABOVE
    if target_range.contains(start_value) and target_range.contains(end_value):
        return Label.TARGET
    return Label.BELOW


def crossing_time(start: Measurement, end: Measurement, threshold: float) -> float:
    """Day at which the line from ``start`` to ``end`` reaches ``threshold``."""
    slope = (end.value - start.value) / (end.timestamp - start.timestamp)
    when = start.timestamp + (threshold - start.value) / slope
    # keep float rounding from pushing the point outside its gap
    return min(max(when, start.timestamp), end.timestamp)


def _next_crossing(
    start: Measurement, end: Measurement, target_range: TargetRange
) -> Optional[Measurement]:
    """The first threshold strictly between two values, as a synthetic point."""
    if end.timestamp == start.timestamp:
        return None
    lo, hi = sorted((start.value, end.value))
    crossed = [y for y in (target_range.low, target_range.high) if lo < y < hi]
    if not crossed:
        return None
    threshold = min(crossed, key=lambda y: abs(y - start.value))
    return Measurement(
        patient_id=start.patient_id,
        timestamp=crossing_time(start, end, threshold),
        value=threshold,
        synthetic=True,
    )


def insert_crossings(
    measurements: Iterable[Measurement], target_range: TargetRange, interp_limit: float
) -> list[Measurement]:
    """
    Return the series sorted by day with synthetic threshold crossings added.

    Only gaps shorter than ``interp_limit`` are considered. Every inserted
    point has ``synthetic=True`` and a value of exactly ``low`` or ``high``.
    """
    series = sorted(measurements, key=lambda m: m.timestamp)
    while True:
        inserted = 0
        index = 0
        while index < len(series) - 1:
            start, end = series[index], series[index + 1]
            if end.timestamp - start.timestamp < interp_limit:
                point = _next_crossing(start, end, target_range)
                if point is not None:
                    series.insert(index + 1, point)
                    inserted += 1
            index += 1
        if not inserted:
            return series


def segment(
    measurements: Sequence[Measurement], target_range: TargetRange, policy: Policy
) -> list[Interval]:
    """
    Partition one patient's observation time into labeled intervals.

    Intervals come back in time order, followed by a single missing-time
    interval (possibly zero days). An empty series yields no intervals.
    """
    if not measurements:
        return []
    patient_ids = {m.patient_id for m in measurements}
    if len(patient_ids) > 1:
        raise ValueError(f"segment() expects a single patient, got {sorted(patient_ids)}")

    series = insert_crossings(measurements, target_range, policy.interp_limit)
    patient_id = series[0].patient_id
    intervals: list[Interval] = []

    for start, end in pairwise(series):
        gap = end.timestamp - start.timestamp
        if gap < policy.interp_limit:
            intervals.append(
                Interval(
                    patient_id=patient_id,
                    duration=gap,
                    label=classify_pair(start.value, end.value, target_range),
                    start=start.timestamp,
                    source=Source.INTERPOLATED,
                )
            )
        else:
            # never carry past the next visit
            intervals.append(
                Interval(
                    patient_id=patient_id,
                    duration=min(policy.carry_forward, gap),
                    label=classify_value(start.value, target_range),
                    start=start.timestamp,
                    source=Source.CARRIED,
                )
            )

    last = series[-1]
    intervals.append(
        Interval(
            patient_id=patient_id,
            duration=policy.carry_forward,
            label=classify_value(last.value, target_range),
            start=last.timestamp,
            source=Source.CARRIED,
        )
    )

    span = (last.timestamp - series[0].timestamp) + policy.carry_forward
    missing = span - math.fsum(interval.duration for interval in intervals)
    if missing < 0:
        if -missing > _SPAN_TOLERANCE * max(1.0, span):
            raise SegmentationError(
                patient_id, f"accounted time exceeds observation span by {-missing!r} days"
            )
        missing = 0.0
    intervals.append(
        Interval(
            patient_id=patient_id,
            duration=missing,
            label=Label.MISSING,
            start=None,
            source=Source.MISSING,
        )
    )
    LOGGER.debug(
        "Patient %r: %d visits, %d intervals, %.3f missing days",
        patient_id, len(measurements), len(intervals), missing,
    )
    return intervals


def group_by_patient(measurements: Iterable[Measurement]) -> dict[str, list[Measurement]]:
    """Group measurements by patient, in order of first appearance."""
    grouped: dict[str, list[Measurement]] = defaultdict(list)
    for measurement in measurements:
        grouped[measurement.patient_id].append(measurement)
    return dict(grouped)


def _segment_patient(
    patient_id: str, series: list[Measurement], target_range: TargetRange, policy: Policy
) -> list[Interval]:
    try:
        return segment(series, target_range, policy)
    except SegmentationError:
        raise
    except (ValueError, ArithmeticError) as e:
        raise SegmentationError(patient_id, str(e)) from e


def segment_population(
    measurements: Iterable[Measurement],
    target_range: TargetRange,
    policy: Policy,
    *,
    notepad: Optional[Notepad] = None,
    skip_failed: bool = False,
    workers: int = 1,
) -> list[Interval]:
    """
    Segment every patient and concatenate the intervals in patient order.

    The policy is validated once, before any patient is processed. A failing
    patient raises SegmentationError unless ``skip_failed`` is set, in which
    case the failure is logged, added to ``notepad`` and the patient skipped.
    With ``workers > 1`` patients are segmented on a thread pool; the output
    order does not depend on the number of workers.
    """
    policy.validate()
    by_patient = group_by_patient(measurements)
    LOGGER.info("Segmenting %d patients (workers=%d)", len(by_patient), workers)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                patient_id: pool.submit(_segment_patient, patient_id, series, target_range, policy)
                for patient_id, series in by_patient.items()
            }
            outcomes = [(patient_id, future.result) for patient_id, future in futures.items()]
    else:
        outcomes = [
            (patient_id, lambda p=patient_id, s=series: _segment_patient(p, s, target_range, policy))
            for patient_id, series in by_patient.items()
        ]

    intervals: list[Interval] = []
    skipped = 0
    for patient_id, outcome in outcomes:
        try:
            intervals.extend(outcome())
        except SegmentationError as e:
            if not skip_failed:
                raise
            skipped += 1
            LOGGER.warning("Skipping patient %r: %s", patient_id, e)
            if notepad is not None:
                notepad.add_error(str(e))

    LOGGER.info(
        "Segmented %d patients into %d intervals (%d skipped)",
        len(by_patient) - skipped, len(intervals), skipped,
    )
    return intervals
