"""Summary statistics for a depression-fill run."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from spilldem.topology import FLOW_DRAIN


@dataclass(frozen=True)
class FillMetrics:
    """How much of the surface was raised, and by how much."""

    total_cells: int
    nodata_cells: int
    drain_cells: int
    raised_cells: int
    max_raise: float
    mean_raise: float
    fill_volume: float
    unresolved_cells: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def compute_fill_metrics(
    original: np.ndarray,
    filled: np.ndarray,
    flow_dir: np.ndarray,
    valid_mask: np.ndarray,
    pixel_size: tuple[float, float],
    unresolved_cells: int = 0,
) -> FillMetrics:
    """Compare the filled surface with the original over valid cells.

    Drain cells are the valid cells whose flow direction is the drain code.
    """

    if original.shape != filled.shape:
        raise ValueError("original and filled shapes differ")

    valid = valid_mask.astype(bool, copy=False)
    total = int(original.size)
    nodata_count = total - int(valid.sum())
    drain_count = int(np.count_nonzero(valid & (flow_dir == FLOW_DRAIN)))
    if not np.any(valid):
        return FillMetrics(total, nodata_count, drain_count, 0, 0.0, 0.0, 0.0, int(unresolved_cells))

    raise_m = filled[valid].astype(np.float64) - original[valid].astype(np.float64)
    raised = raise_m > 0.0
    raised_count = int(raised.sum())
    cell_area = float(pixel_size[0]) * float(pixel_size[1])
    return FillMetrics(
        total_cells=total,
        nodata_cells=nodata_count,
        drain_cells=drain_count,
        raised_cells=raised_count,
        max_raise=float(raise_m.max()) if raised_count else 0.0,
        mean_raise=float(raise_m[raised].mean()) if raised_count else 0.0,
        fill_volume=float(raise_m[raised].sum() * cell_area),
        unresolved_cells=int(unresolved_cells),
    )
