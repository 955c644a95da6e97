"""Configuration models and validated inputs for depression filling."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import math
from typing import Any

import numpy as np


DEFAULT_NODATA = -9999.0
DEFAULT_OUTPUT = "out.tif"
DEFAULT_PIXEL_SIZE = (1.0, 1.0)


class InvalidGridError(ValueError):
    """Raised when a grid or fill configuration cannot be processed."""


@dataclass(frozen=True)
class FillConfig:
    """Controls the priority-flood fill.

    A `min_slope_deg` of zero or below selects flat-fill mode.
    """

    min_slope_deg: float = 0.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.min_slope_deg):
            raise InvalidGridError(f"min_slope_deg must be finite, got {self.min_slope_deg}")
        if self.min_slope_deg >= 90.0:
            raise InvalidGridError(f"min_slope_deg must be below 90 degrees, got {self.min_slope_deg}")

    @property
    def min_slope_enabled(self) -> bool:
        return self.min_slope_deg > 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ElevationGrid:
    """Elevation samples with their nodata sentinel and ground pixel size."""

    values: np.ndarray
    nodata: float = DEFAULT_NODATA
    pixel_size: tuple[float, float] = DEFAULT_PIXEL_SIZE

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", np.asarray(self.values, dtype=np.float32))
        if self.values.ndim != 2:
            raise InvalidGridError("elevation values must be a 2D array")
        height, width = self.values.shape
        if width <= 0 or height <= 0:
            raise InvalidGridError(f"grid must be non-empty, got {width}x{height}")
        _check_pixel_size(self.pixel_size)

    @classmethod
    def from_buffer(
        cls,
        buffer: Any,
        width: int,
        height: int,
        *,
        nodata: float = DEFAULT_NODATA,
        pixel_size: tuple[float, float] = DEFAULT_PIXEL_SIZE,
    ) -> "ElevationGrid":
        """Wrap a flat row-major buffer of `width * height` samples."""

        if width <= 0 or height <= 0:
            raise InvalidGridError(f"width and height must be positive, got {width}x{height}")
        flat = np.asarray(buffer, dtype=np.float32).ravel()
        if flat.size != width * height:
            raise InvalidGridError(f"buffer holds {flat.size} samples, expected {width * height}")
        return cls(flat.reshape((height, width)), float(nodata), (float(pixel_size[0]), float(pixel_size[1])))

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    def nodata_mask(self) -> np.ndarray:
        """Cells holding the nodata sentinel. NaN samples always count as nodata."""

        values = self.values
        mask = np.isnan(values)
        if not math.isnan(self.nodata):
            mask |= values == np.float32(self.nodata)
        return mask


def _check_pixel_size(pixel_size: tuple[float, float]) -> None:
    if len(pixel_size) != 2:
        raise InvalidGridError("pixel_size must be an (sx, sy) pair")
    for value in pixel_size:
        if not math.isfinite(value) or value <= 0.0:
            raise InvalidGridError(f"pixel size must be positive and finite, got {tuple(pixel_size)}")
