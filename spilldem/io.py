"""Raster, JSON and preview serialization for fill runs."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image
import rasterio

from spilldem.config import DEFAULT_NODATA, DEFAULT_PIXEL_SIZE, ElevationGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElevationSource:
    """An elevation grid plus the profile needed to write georeferenced outputs."""

    grid: ElevationGrid
    profile: dict[str, Any] | None
    path: Path


def read_elevation(path: str | Path, *, nodata: float | None = None, band: int = 1) -> ElevationSource:
    """Read one band of a raster (or a 2D `.npy` array) as float32 elevations.

    The dataset nodata value is used unless `nodata` overrides it; rasters
    without one fall back to DEFAULT_NODATA.
    """

    src_path = Path(path)
    if src_path.suffix.lower() == ".npy":
        try:
            values = np.load(src_path, allow_pickle=False).astype(np.float32)
        except ValueError as exc:
            raise OSError(f"{src_path} is not a numeric .npy array: {exc}") from exc
        fill_value = DEFAULT_NODATA if nodata is None else float(nodata)
        grid = ElevationGrid(values, fill_value, DEFAULT_PIXEL_SIZE)
        logger.info("Read %s: %dx%d array", src_path, grid.width, grid.height)
        return ElevationSource(grid, None, src_path)

    with rasterio.open(src_path) as src:
        values = src.read(band).astype(np.float32)
        profile = dict(src.profile)
        dataset_nodata = src.nodatavals[band - 1]
        res = src.res

    if nodata is not None:
        fill_value = float(nodata)
    elif dataset_nodata is not None:
        fill_value = float(dataset_nodata)
    else:
        fill_value = DEFAULT_NODATA
    grid = ElevationGrid(values, fill_value, (abs(float(res[0])), abs(float(res[1]))))
    logger.info(
        "Read %s: %dx%d, nodata=%g, pixel size=(%g, %g)",
        src_path,
        grid.width,
        grid.height,
        fill_value,
        grid.pixel_size[0],
        grid.pixel_size[1],
    )
    return ElevationSource(grid, profile, src_path)


def write_raster(
    path: str | Path,
    values: np.ndarray,
    *,
    profile: dict[str, Any] | None,
    nodata: float | None,
) -> None:
    """Write a single-band raster, propagating CRS and transform from `profile`.

    A `.npy` path is saved with numpy. Without a profile the GeoTIFF carries no
    georeferencing.
    """

    out_path = Path(path)
    if out_path.suffix.lower() == ".npy":
        np.save(out_path, values, allow_pickle=False)
        logger.info("Wrote %s", out_path)
        return

    height, width = values.shape
    out_profile = dict(profile or {})
    out_profile.update(
        driver="GTiff",
        dtype=values.dtype.name,
        count=1,
        width=width,
        height=height,
        nodata=nodata,
        compress="lzw",
    )
    with rasterio.open(out_path, "w", **out_profile) as dst:
        dst.write(values, 1)
    logger.info("Wrote %s (%s)", out_path, values.dtype.name)


def write_png_u8(path: str | Path, raster_u8: np.ndarray) -> None:
    image = Image.fromarray(raster_u8.astype(np.uint8))
    image.save(Path(path))


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    Path(path).write_text(text + "\n", encoding="utf-8")
