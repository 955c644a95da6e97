"""Steepest-descent flow direction for cells left unresolved by propagation."""

from __future__ import annotations

import numpy as np

from spilldem.topology import FLOW_UNRESOLVED, GridTopology


def resolve_flow_direction(
    index: int,
    z: float,
    elevation: np.ndarray,
    processed: np.ndarray,
    nodata: np.ndarray,
    topology: GridTopology,
) -> int:
    """Return the D8 code of the steepest processed neighbor at or below `z`.

    `elevation`, `processed` and `nodata` are flat arrays over the grid. Only
    neighbors that are already processed, hold data, and are not higher than `z`
    qualify; the gradient is the drop per unit ground distance. The first
    direction in table order wins exact ties. Returns `FLOW_UNRESOLVED` when no
    neighbor qualifies.
    """

    x, y = topology.coords(index)
    best_direction = -1
    best_gradient = -np.inf
    for direction, nx, ny in topology.neighbors(x, y):
        nflat = topology.index(nx, ny)
        if not processed[nflat] or nodata[nflat]:
            continue
        nz = float(elevation[nflat])
        if nz > z:
            continue
        gradient = (z - nz) / topology.length(direction)
        if gradient > best_gradient:
            best_gradient = gradient
            best_direction = direction

    if best_direction < 0:
        return FLOW_UNRESOLVED
    return topology.code(best_direction)
