"""Priority-flood depression filling with D8 flow direction assignment.

Implements the least-cost-path fill of Wang & Liu (2006). Cells are committed in
ascending order of spill elevation, starting from the drain cells on the grid
boundary or next to nodata. Each committed cell raises its unvisited neighbors to
at least its own spill elevation (plus the minimum-slope increment when that
rule is enabled) and then receives a flow direction, either assigned during
propagation across an exactly flat step or resolved by steepest descent.
"""

from __future__ import annotations

from dataclasses import dataclass
import heapq
import logging
import math
import time

import numpy as np
from scipy import ndimage

from spilldem.config import ElevationGrid, FillConfig
from spilldem.metrics import FillMetrics, compute_fill_metrics
from spilldem.resolver import resolve_flow_direction
from spilldem.slope import MinimumSlopeRule
from spilldem.topology import DIRECTIONS_8, FLOW_DRAIN, FLOW_UNRESOLVED, GridTopology

logger = logging.getLogger(__name__)

_NEIGHBORHOOD_8 = np.ones((3, 3), dtype=bool)


@dataclass(frozen=True)
class FloodOutput:
    """Raw engine buffers, all flat and indexed by `y * width + x`."""

    filled: np.ndarray
    flow_dir: np.ndarray
    order: np.ndarray
    parent: np.ndarray
    drain_mask: np.ndarray
    unresolved_cells: int


@dataclass(frozen=True)
class FillResult:
    """Filled surface, flow directions, and run diagnostics shaped like the input."""

    filled: np.ndarray
    flow_dir: np.ndarray
    order: np.ndarray
    parent: np.ndarray
    drain_mask: np.ndarray
    metrics: FillMetrics
    elapsed_seconds: float


def drain_cell_mask(nodata_mask: np.ndarray) -> np.ndarray:
    """Valid cells on the grid boundary or 8-adjacent to a nodata cell."""

    near_edge = ndimage.binary_dilation(nodata_mask, structure=_NEIGHBORHOOD_8, border_value=1)
    return near_edge & ~nodata_mask


class PriorityFloodEngine:
    """Fill engine bound to one grid topology and slope rule; `run` keeps no state."""

    def __init__(self, topology: GridTopology, slope_rule: MinimumSlopeRule | None = None) -> None:
        self.topology = topology
        self.slope_rule = slope_rule or MinimumSlopeRule.from_angle(0.0, topology)

    def run(self, values: np.ndarray, nodata_mask: np.ndarray) -> FloodOutput:
        topo = self.topology
        width = topo.width
        height = topo.height
        size = topo.size
        if values.shape != (height, width) or nodata_mask.shape != (height, width):
            raise ValueError(f"expected arrays of shape {(height, width)}, got {values.shape}")

        filled = values.astype(np.float32, copy=True).ravel()
        original = values.astype(np.float32, copy=False).ravel()
        nodata = nodata_mask.ravel()
        drains = drain_cell_mask(nodata_mask).ravel()

        processed = nodata.copy()
        queued = drains.copy()
        flow_dir = np.full(size, FLOW_UNRESOLVED, dtype=np.uint8)
        flow_dir[nodata | drains] = FLOW_DRAIN
        parent = np.full(size, -1, dtype=np.int64)
        order = np.empty(size - int(nodata.sum()), dtype=np.int64)

        drain_idx = np.flatnonzero(drains)
        heap: list[tuple[float, int]] = [(float(original[i]), int(i)) for i in drain_idx]
        heapq.heapify(heap)
        logger.debug("Frontier seeded with %d drain cells", len(heap))

        increments = self.slope_rule.min_increment
        min_slope = self.slope_rule.enabled
        unresolved = 0
        pops = 0

        while heap:
            z, flat = heapq.heappop(heap)
            processed[flat] = True
            queued[flat] = False
            order[pops] = flat
            pops += 1

            # GridTopology.neighbors inlined; this runs once per committed cell.
            y, x = divmod(flat, width)
            for direction, (dx, dy) in enumerate(DIRECTIONS_8):
                nx = x + dx
                ny = y + dy
                if nx < 0 or nx >= width or ny < 0 or ny >= height:
                    continue
                nflat = ny * width + nx
                if queued[nflat] or processed[nflat]:
                    continue

                nz = float(original[nflat])
                if min_slope:
                    candidate = max(nz, z + increments[direction])
                else:
                    candidate = max(nz, z)
                    if nz == z:
                        # Flat step: drain back into the committed cell.
                        flow_dir[nflat] = topo.code(topo.reverse(direction))

                stored = np.float32(candidate)
                filled[nflat] = stored
                parent[nflat] = flat
                queued[nflat] = True
                heapq.heappush(heap, (float(stored), nflat))

            if flow_dir[flat] == FLOW_UNRESOLVED:
                code = resolve_flow_direction(flat, z, filled, processed, nodata, topo)
                if code == FLOW_UNRESOLVED:
                    unresolved += 1
                flow_dir[flat] = code

        if pops != order.size:
            raise RuntimeError(f"priority flood committed {pops} of {order.size} valid cells")
        if unresolved:
            logger.warning("%d interior cells have no downstream neighbor", unresolved)

        return FloodOutput(
            filled=filled,
            flow_dir=flow_dir,
            order=order,
            parent=parent,
            drain_mask=drains,
            unresolved_cells=unresolved,
        )


def fill_depressions(grid: ElevationGrid, *, config: FillConfig | None = None) -> FillResult:
    """Fill pits in `grid` and assign a D8 flow direction to every cell.

    Nodata cells keep their value and get the drain code 255; NaN samples are
    written back as the numeric nodata value when the grid has one. The input
    array is never modified.
    """

    cfg = config or FillConfig()
    topology = GridTopology(grid.width, grid.height, grid.pixel_size)
    rule = MinimumSlopeRule.from_angle(cfg.min_slope_deg, topology)
    nodata_mask = grid.nodata_mask()

    mode = f"minimum slope {rule.angle_deg:g} deg" if rule.enabled else "flat fill"
    logger.info("Filling %dx%d grid (%s)", grid.width, grid.height, mode)

    start = time.perf_counter()
    out = PriorityFloodEngine(topology, rule).run(grid.values, nodata_mask)
    elapsed = time.perf_counter() - start

    shape = (grid.height, grid.width)
    filled = out.filled.reshape(shape)
    if not math.isnan(grid.nodata):
        filled[np.isnan(filled)] = np.float32(grid.nodata)
    flow_dir = out.flow_dir.reshape(shape)
    drain_mask = out.drain_mask.reshape(shape)
    metrics = compute_fill_metrics(
        grid.values,
        filled,
        flow_dir,
        ~nodata_mask,
        grid.pixel_size,
        out.unresolved_cells,
    )
    logger.info(
        "Raised %d of %d cells (max %.4g) in %.3f s",
        metrics.raised_cells,
        metrics.total_cells - metrics.nodata_cells,
        metrics.max_raise,
        elapsed,
    )
    return FillResult(
        filled=filled,
        flow_dir=flow_dir,
        order=out.order,
        parent=out.parent,
        drain_mask=drain_mask,
        metrics=metrics,
        elapsed_seconds=elapsed,
    )
