"""
Target band and gap-handling policy.

Both are required inputs to every segmentation run. They validate on
construction, so an invalid configuration fails before any patient is touched.
"""

import math
from dataclasses import dataclass

# Hematocrit band (%) and the one-week window used by default.
DEFAULT_LOW = 29.0
DEFAULT_HIGH = 32.0
DEFAULT_INTERP_LIMIT = 7.0
DEFAULT_CARRY_FORWARD = 7.0


class ConfigurationError(ValueError):
    """Raised when a TargetRange or Policy cannot be used for segmentation."""


def _check_finite(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")


@dataclass(frozen=True)
class TargetRange:
    """
    Closed target band [low, high].

    Attributes:
        low: Lowest in-range value.
        high: Highest in-range value.
    """

    low: float = DEFAULT_LOW
    high: float = DEFAULT_HIGH

    def __post_init__(self):
        _check_finite("low", self.low)
        _check_finite("high", self.high)
        if self.low > self.high:
            raise ConfigurationError(
                f"low must not exceed high, got low={self.low!r} high={self.high!r}"
            )

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high


@dataclass(frozen=True)
class Policy:
    """
    How the time between two visits is accounted for.

    Attributes:
        interp_limit: Gaps (days) strictly shorter than this are linearly
            interpolated.
        carry_forward: Days a value is carried forward when the next visit is
            too far away to interpolate, and after the last visit.

    ``carry_forward`` must be at least ``interp_limit``.
    """

    interp_limit: float = DEFAULT_INTERP_LIMIT
    carry_forward: float = DEFAULT_CARRY_FORWARD

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError unless this policy can be used."""
        _check_finite("interp_limit", self.interp_limit)
        _check_finite("carry_forward", self.carry_forward)
        if self.interp_limit < 0:
            raise ConfigurationError(f"interp_limit must be non-negative, got {self.interp_limit!r}")
        if self.carry_forward < self.interp_limit:
            raise ConfigurationError(
                f"carry_forward ({self.carry_forward!r}) must be greater than or "
                f"equal to interp_limit ({self.interp_limit!r})"
            )
