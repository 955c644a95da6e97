"""Minimum-slope enforcement for the priority-flood fill."""

from __future__ import annotations

from dataclasses import dataclass
import math

from spilldem.config import InvalidGridError
from spilldem.topology import GridTopology


@dataclass(frozen=True)
class MinimumSlopeRule:
    """Per-direction minimum elevation increment derived from a slope angle.

    With `angle_deg <= 0` the rule is disabled and every increment is zero, which
    gives the classical flat-fill behavior.
    """

    angle_deg: float
    min_increment: tuple[float, ...]

    @classmethod
    def from_angle(cls, angle_deg: float, topology: GridTopology) -> "MinimumSlopeRule":
        angle = float(angle_deg)
        if not math.isfinite(angle) or angle >= 90.0:
            raise InvalidGridError(f"minimum slope angle must be finite and below 90 degrees, got {angle}")
        if angle <= 0.0:
            return cls(angle, (0.0,) * 8)
        tangent = math.tan(math.radians(angle))
        return cls(angle, tuple(tangent * length for length in topology.lengths))

    @property
    def enabled(self) -> bool:
        return self.angle_deg > 0.0

    def increment(self, direction: int) -> float:
        return self.min_increment[direction]
