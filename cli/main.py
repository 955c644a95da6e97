"""CLI entry point for depression filling."""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
import logging
from pathlib import Path
import platform
import sys

import numpy as np
import rasterio
from rasterio.errors import RasterioIOError

from spilldem.config import DEFAULT_OUTPUT, FillConfig, InvalidGridError
from spilldem.derive import fill_depth_u8, float_preview_u8, flow_accum_log_u8, flow_dir_u8
from spilldem.drainage import flow_accumulation, validate_drainage
from spilldem.flood import fill_depressions
from spilldem.io import read_elevation, write_json, write_png_u8, write_raster

__version__ = "0.1.0"

logger = logging.getLogger("spilldem.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spilldem",
        description="Fill depressions in a DEM and derive D8 flow directions (Wang & Liu, 2006)",
    )
    parser.add_argument("datasource", help="Input elevation raster (any GDAL format, or .npy)")
    parser.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help="Filled DEM output file name")
    parser.add_argument("-f", "--flow", default=None, help="Flow direction output file name")
    parser.add_argument(
        "-m",
        "--minslope",
        type=float,
        default=0.0,
        help="Minimum slope angle in degrees enforced between filled cells (0 disables)",
    )
    parser.add_argument("--nodata", type=float, default=None, help="Override the source nodata value")
    parser.add_argument("--meta", default=None, help="Write run metadata JSON to this path")
    parser.add_argument("--preview", default=None, help="Directory for 8-bit PNG previews")
    parser.add_argument("-v", "--verbose", action="store_true", help="Display information messages")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = FillConfig(min_slope_deg=args.minslope)
    except InvalidGridError as exc:
        parser.error(str(exc))

    try:
        source = read_elevation(args.datasource, nodata=args.nodata)
    except (OSError, RasterioIOError) as exc:
        print(f"Error: cannot read {args.datasource}: {exc}", file=sys.stderr)
        return 1
    except InvalidGridError as exc:
        parser.error(str(exc))

    grid = source.grid
    try:
        result = fill_depressions(grid, config=config)
    except InvalidGridError as exc:
        parser.error(str(exc))

    nodata_mask = grid.nodata_mask()
    if args.verbose:
        try:
            validate_drainage(result.filled, result.flow_dir, ~nodata_mask)
        except ValueError as exc:
            logger.warning("Drainage check failed: %s", exc)
        else:
            logger.info("Drainage check passed")

    try:
        write_raster(args.output, result.filled, profile=source.profile, nodata=grid.nodata)
        if args.flow:
            write_raster(args.flow, result.flow_dir, profile=source.profile, nodata=None)
        if args.preview:
            _write_previews(Path(args.preview), grid.values, result, nodata_mask)
        if args.meta:
            write_json(args.meta, _metadata(args, grid, config, result))
    except (OSError, RasterioIOError) as exc:
        print(f"Error: cannot write outputs: {exc}", file=sys.stderr)
        return 1

    m = result.metrics
    print(f"Filled DEM: {args.output}")
    if args.flow:
        print(f"Flow directions: {args.flow}")
    print(
        "Fill: "
        f"raised={m.raised_cells}/{m.total_cells - m.nodata_cells}, "
        f"max={m.max_raise:.3f}, "
        f"mean={m.mean_raise:.3f}, "
        f"volume={m.fill_volume:.1f}"
    )
    print(f"Processing time: {result.elapsed_seconds:.3f} s ({grid.width}x{grid.height})")
    return 0


def _write_previews(out_dir: Path, original: np.ndarray, result, nodata_mask: np.ndarray) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    accum = flow_accumulation(result.flow_dir, ~nodata_mask)
    previews = {
        "filled.png": float_preview_u8(result.filled, nodata_mask),
        "fill_depth.png": fill_depth_u8(original, result.filled, nodata_mask),
        "flow_dir.png": flow_dir_u8(result.flow_dir),
        "flow_accum_log.png": flow_accum_log_u8(accum, nodata_mask),
    }
    for name, raster in previews.items():
        write_png_u8(out_dir / name, raster)


def _metadata(args: argparse.Namespace, grid, config: FillConfig, result) -> dict:
    return {
        "datasource": str(args.datasource),
        "output": str(args.output),
        "flow": args.flow,
        "width": grid.width,
        "height": grid.height,
        "nodata": grid.nodata,
        "pixel_size": list(grid.pixel_size),
        "config": config.to_dict(),
        "metrics": result.metrics.to_dict(),
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "processing_seconds": result.elapsed_seconds,
        "python_version": platform.python_version(),
        "numpy_version": np.__version__,
        "rasterio_version": rasterio.__version__,
    }


if __name__ == "__main__":
    raise SystemExit(main())
