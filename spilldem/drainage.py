"""Routing queries over D8 flow-direction grids."""

from __future__ import annotations

from collections import deque

import numpy as np

from spilldem.topology import D8_CODES, DIRECTIONS_8, FLOW_DRAIN, FLOW_UNRESOLVED


def downstream_index(flow_dir: np.ndarray) -> np.ndarray:
    """Flat index of each cell's receiver, or -1 where the cell does not route.

    Sentinels, unknown codes and receivers that would fall outside the grid all
    map to -1.
    """

    if flow_dir.ndim != 2:
        raise ValueError("flow_dir must be a 2D array")
    h, w = flow_dir.shape
    dest = np.full((h, w), -1, dtype=np.int64)
    for direction, (dx, dy) in enumerate(DIRECTIONS_8):
        m = flow_dir == D8_CODES[direction]
        if not np.any(m):
            continue
        dest[m] = _shift_index_grid(h, w, dx, dy)[m]
    return dest.ravel()


def trace_flow_path(flow_dir: np.ndarray, x: int, y: int, *, max_steps: int | None = None) -> list[int]:
    """Follow flow directions from (x, y) and return the visited flat indices.

    The path ends at the first cell that does not route further (a drain, a
    nodata cell, or an unresolved cell). Raises ValueError on a cycle or when the
    path is longer than `max_steps` (default: the number of cells).
    """

    h, w = flow_dir.shape
    if not (0 <= x < w and 0 <= y < h):
        raise ValueError(f"start ({x}, {y}) outside {w}x{h} grid")
    dest = downstream_index(flow_dir)
    limit = h * w if max_steps is None else int(max_steps)

    curr = y * w + x
    path = [curr]
    seen = {curr}
    while dest[curr] >= 0:
        curr = int(dest[curr])
        if curr in seen:
            raise ValueError(f"flow cycle through cell {divmod(curr, w)[::-1]}")
        if len(path) > limit:
            raise ValueError(f"flow path from ({x}, {y}) exceeds {limit} steps")
        seen.add(curr)
        path.append(curr)
    return path


def validate_drainage(filled: np.ndarray, flow_dir: np.ndarray, valid_mask: np.ndarray) -> None:
    """Raise ValueError unless every valid cell drains downhill to an outlet.

    `valid_mask` is True on cells holding data.
    """

    if filled.shape != flow_dir.shape or filled.shape != valid_mask.shape:
        raise ValueError("filled, flow_dir and valid_mask shapes differ")

    valid = valid_mask.astype(bool, copy=False)
    nodata_mask = ~valid
    if np.any(flow_dir[nodata_mask] != FLOW_DRAIN):
        raise ValueError("nodata cells must carry the drain code")
    unresolved = int(np.count_nonzero(valid & (flow_dir == FLOW_UNRESOLVED)))
    if unresolved:
        raise ValueError(f"{unresolved} valid cells have no flow direction")

    known = np.isin(flow_dir, np.array(D8_CODES + (FLOW_DRAIN,), dtype=np.uint8))
    if not np.all(known):
        raise ValueError(f"unknown flow codes: {np.unique(flow_dir[~known]).tolist()}")

    dest = downstream_index(flow_dir)
    routing = (flow_dir.ravel() != FLOW_DRAIN) & valid.ravel()
    if np.any(dest[routing] < 0):
        raise ValueError("flow directions point outside the grid")
    src = np.flatnonzero(routing)
    dst = dest[src]
    if np.any(nodata_mask.ravel()[dst]):
        raise ValueError("flow directions point into nodata")
    elev = filled.ravel()
    uphill = elev[dst] > elev[src]
    if np.any(uphill):
        raise ValueError(f"{int(uphill.sum())} cells drain uphill")

    order = _topological_order(dest, valid.ravel())
    if order.size != int(valid.sum()):
        raise ValueError("flow directions contain a cycle")


def flow_accumulation(flow_dir: np.ndarray, valid_mask: np.ndarray | None = None) -> np.ndarray:
    """Number of valid cells draining through each cell, itself included."""

    h, w = flow_dir.shape
    valid = np.ones(h * w, dtype=bool) if valid_mask is None else valid_mask.astype(bool).ravel()
    dest = downstream_index(flow_dir)
    accum = valid.astype(np.float32)
    for src in _topological_order(dest, valid):
        dst = int(dest[src])
        if dst >= 0 and valid[dst]:
            accum[dst] += accum[src]
    return accum.reshape((h, w))


def _topological_order(dest: np.ndarray, valid: np.ndarray) -> np.ndarray:
    """Valid cells ordered upstream-first; cells on a cycle are left out."""

    routes = valid & (dest >= 0)
    routes[routes] &= valid[dest[routes]]
    indegree = np.zeros(dest.size, dtype=np.int64)
    np.add.at(indegree, dest[routes], 1)

    queue = deque(int(i) for i in np.flatnonzero(valid & (indegree == 0)))
    order: list[int] = []
    while queue:
        curr = queue.popleft()
        order.append(curr)
        if not routes[curr]:
            continue
        nxt = int(dest[curr])
        indegree[nxt] -= 1
        if indegree[nxt] == 0:
            queue.append(nxt)
    return np.array(order, dtype=np.int64)


def _shift_index_grid(h: int, w: int, dx: int, dy: int) -> np.ndarray:
    """For each cell, the flat index of its (dx, dy) neighbor or -1 off-grid."""

    grid = np.arange(h * w, dtype=np.int64).reshape((h, w))
    out = np.full((h, w), -1, dtype=np.int64)

    y_dst0 = max(0, -dy)
    y_dst1 = h - max(0, dy)
    x_dst0 = max(0, -dx)
    x_dst1 = w - max(0, dx)

    y_src0 = max(0, dy)
    y_src1 = h - max(0, -dy)
    x_src0 = max(0, dx)
    x_src1 = w - max(0, -dx)

    out[y_dst0:y_dst1, x_dst0:x_dst1] = grid[y_src0:y_src1, x_src0:x_src1]
    return out
