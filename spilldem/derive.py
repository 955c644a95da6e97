"""8-bit preview rasters for filled surfaces and flow grids."""

from __future__ import annotations

import numpy as np

from spilldem.topology import D8_CODES, FLOW_DRAIN


def float_preview_u8(
    values: np.ndarray,
    nodata_mask: np.ndarray | None = None,
    *,
    robust_percentiles: tuple[float, float] = (1.0, 99.0),
) -> np.ndarray:
    """Map float values to 8-bit grayscale; nodata cells become 0."""

    out = np.zeros(values.shape, dtype=np.uint8)
    valid = np.isfinite(values)
    if nodata_mask is not None:
        valid &= ~nodata_mask
    if not np.any(valid):
        return out

    lo, hi = np.percentile(values[valid], robust_percentiles)
    scale = max(float(hi - lo), 1e-6)
    norm = np.clip((values[valid] - lo) / scale, 0.0, 1.0)
    # Keep valid lows distinguishable from nodata.
    out[valid] = np.round(1.0 + norm * 254.0).astype(np.uint8)
    return out


def fill_depth_u8(original: np.ndarray, filled: np.ndarray, nodata_mask: np.ndarray) -> np.ndarray:
    """Depth of fill above the original surface, stretched to the deepest pit."""

    depth = np.zeros(original.shape, dtype=np.float32)
    valid = ~nodata_mask
    depth[valid] = np.clip(filled[valid] - original[valid], 0.0, None)
    peak = float(depth.max()) if depth.size else 0.0
    if peak <= 0.0:
        return np.zeros(original.shape, dtype=np.uint8)
    return np.round(depth / peak * 255.0).astype(np.uint8)


def flow_dir_u8(flow_dir: np.ndarray) -> np.ndarray:
    """Encode D8 codes as evenly spaced gray levels; drains white, others black."""

    lut = np.zeros(256, dtype=np.uint8)
    for direction, code in enumerate(D8_CODES):
        lut[code] = 28 * (direction + 1)
    lut[FLOW_DRAIN] = 255
    return lut[flow_dir.astype(np.uint8)]


def flow_accum_log_u8(accum: np.ndarray, nodata_mask: np.ndarray | None = None) -> np.ndarray:
    """Log-scaled flow accumulation preview."""

    logged = np.log1p(np.clip(accum.astype(np.float32), 0.0, None))
    return float_preview_u8(logged, nodata_mask, robust_percentiles=(0.0, 100.0))
