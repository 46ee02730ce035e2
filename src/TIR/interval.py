"""
Interval domain model.

Defines the Label enum and the Interval dataclass produced by segmentation.
"""

import typing
from dataclasses import dataclass
from enum import Enum


class Label(Enum):
    """
    Where a stretch of time falls relative to the target band.
    Declaration order is the reporting order.
    """
    ABOVE = "above"
    TARGET = "target"
    BELOW = "below"
    MISSING = "missing"


class Source(Enum):
    """How the time of an Interval was accounted for."""
    INTERPOLATED = "interpolated"
    CARRIED = "carried"
    MISSING = "missing"


@dataclass(frozen=True)
class Interval:
    """
    A labeled stretch of one patient's observation time.

    Attributes:
        patient_id: Patient the interval belongs to.
        duration: Length in days (never negative).
        label: Position relative to the target band.
        start: Day the interval begins; None for the missing-time interval,
            which is not anchored to a single place in the timeline.
        source: Whether the time was interpolated, carried forward or missing.
    """

    patient_id: str
    duration: float
    label: Label
    start: typing.Optional[float] = None
    source: Source = Source.INTERPOLATED

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"Interval duration must be non-negative, got {self.duration!r}")
        if not isinstance(self.label, Label):
            raise ValueError(f"label must be a Label, got {type(self.label).__name__}")
