"""
Measurement domain model.

Defines the Measurement dataclass for a single patient visit value.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Measurement:
    """
    Represents one measured value for a patient at a given day.

    Attributes:
        patient_id: Patient identifier shared by all visits of that patient.
        timestamp: Day count of the visit (e.g. days since 1970-01-01).
        value: Measured value (e.g. hematocrit, %).
        synthetic: True for points inserted where an interpolated line
            crosses a target threshold; False for real visits.
    """

    patient_id: str
    timestamp: float
    value: float
    synthetic: bool = False

    def __post_init__(self):
        # Validate patient ID
        if not isinstance(self.patient_id, str) or not self.patient_id.strip():
            raise ValueError(f"Invalid patient ID: {self.patient_id!r}")

        # Validate timestamp and value
        for name in ("timestamp", "value"):
            number = getattr(self, name)
            if isinstance(number, bool) or not isinstance(number, (int, float)):
                raise ValueError(
                    f"{name} must be a number, got {type(number).__name__}"
                )
            if not math.isfinite(number):
                raise ValueError(f"{name} must be finite, got {number!r}")
