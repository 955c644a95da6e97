from __future__ import annotations

import json

import numpy as np
import pytest
import rasterio
from rasterio.crs import CRS
from rasterio.transform import from_origin

from cli.main import main
from spilldem.topology import D8_CODES, FLOW_DRAIN

NODATA = -9999.0


def _pit_surface() -> np.ndarray:
    yy, xx = np.indices((12, 16), dtype=np.float32)
    values = (50.0 + 0.5 * xx + 0.25 * yy).astype(np.float32)
    values[5:8, 6:9] = 20.0
    values[0, 0] = NODATA
    return values


def _write_tif(path, values: np.ndarray) -> None:
    profile = {
        "driver": "GTiff",
        "width": values.shape[1],
        "height": values.shape[0],
        "count": 1,
        "dtype": "float32",
        "crs": CRS.from_epsg(32633),
        "transform": from_origin(500000.0, 4100000.0, 30.0, 30.0),
        "nodata": NODATA,
    }
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(values, 1)


def test_geotiff_outputs_keep_georeferencing(tmp_path) -> None:
    src = tmp_path / "dem.tif"
    _write_tif(src, _pit_surface())
    out = tmp_path / "filled.tif"
    flow = tmp_path / "flow.tif"

    code = main([str(src), "--output", str(out), "--flow", str(flow), "--minslope", "0.5"])
    assert code == 0

    with rasterio.open(out) as ds:
        filled = ds.read(1)
        assert ds.crs == CRS.from_epsg(32633)
        assert ds.transform == from_origin(500000.0, 4100000.0, 30.0, 30.0)
        assert ds.nodata == NODATA
        assert ds.dtypes[0] == "float32"
    with rasterio.open(flow) as ds:
        flow_dir = ds.read(1)
        assert ds.dtypes[0] == "uint8"
        assert ds.crs == CRS.from_epsg(32633)

    original = _pit_surface()
    valid = original != NODATA
    assert filled[0, 0] == NODATA
    assert np.all(filled[valid] >= original[valid])
    assert float(filled[6, 7]) > 20.0
    assert flow_dir[0, 0] == FLOW_DRAIN
    assert set(np.unique(flow_dir[valid]).tolist()) <= set(D8_CODES) | {FLOW_DRAIN}


def test_meta_and_previews_from_npy(tmp_path) -> None:
    src = tmp_path / "dem.npy"
    np.save(src, _pit_surface())
    out = tmp_path / "filled.npy"
    flow = tmp_path / "flow.npy"
    meta_path = tmp_path / "meta.json"
    preview_dir = tmp_path / "preview"

    code = main(
        [
            str(src),
            "-o",
            str(out),
            "-f",
            str(flow),
            "--meta",
            str(meta_path),
            "--preview",
            str(preview_dir),
            "--verbose",
        ]
    )
    assert code == 0

    filled = np.load(out)
    flow_dir = np.load(flow)
    assert filled.shape == (12, 16)
    assert flow_dir.dtype == np.uint8

    meta = json.loads(meta_path.read_text(encoding="utf-8"))
    assert meta["width"] == 16
    assert meta["height"] == 12
    assert meta["nodata"] == NODATA
    assert meta["pixel_size"] == [1.0, 1.0]
    assert meta["config"] == {"min_slope_deg": 0.0}
    assert meta["metrics"]["nodata_cells"] == 1
    assert meta["metrics"]["raised_cells"] == 9
    assert meta["metrics"]["unresolved_cells"] == 0
    assert meta["processing_seconds"] >= 0.0
    assert "generated_at_utc" in meta

    for name in ("filled.png", "fill_depth.png", "flow_dir.png", "flow_accum_log.png"):
        assert (preview_dir / name).exists(), name


def test_nodata_override(tmp_path) -> None:
    values = _pit_surface()
    values[0, 0] = -1.0
    src = tmp_path / "dem.npy"
    np.save(src, values)
    out = tmp_path / "filled.npy"

    assert main([str(src), "-o", str(out), "--nodata", "-1"]) == 0
    assert np.load(out)[0, 0] == -1.0


def test_missing_input_exits_with_failure(tmp_path, capsys) -> None:
    code = main([str(tmp_path / "missing.tif"), "-o", str(tmp_path / "out.tif")])

    assert code == 1
    assert "Error" in capsys.readouterr().err


def test_corrupt_npy_input_exits_with_failure(tmp_path, capsys) -> None:
    src = tmp_path / "dem.npy"
    src.write_text("not an array")

    code = main([str(src), "-o", str(tmp_path / "out.npy")])

    assert code == 1
    err = capsys.readouterr().err
    assert "Error: cannot read" in err
    assert not (tmp_path / "out.npy").exists()


def test_nan_samples_are_written_with_the_nodata_value(tmp_path) -> None:
    values = _pit_surface()
    values[0, 0] = np.nan
    src = tmp_path / "dem.npy"
    out = tmp_path / "filled.npy"
    np.save(src, values)

    assert main([str(src), "-o", str(out), "--nodata", str(NODATA)]) == 0

    filled = np.load(out)
    assert filled[0, 0] == np.float32(NODATA)
    assert not np.any(np.isnan(filled))



def test_invalid_minimum_slope_is_a_usage_error(tmp_path) -> None:
    src = tmp_path / "dem.npy"
    np.save(src, _pit_surface())

    with pytest.raises(SystemExit) as exc:
        main([str(src), "-m", "95"])
    assert exc.value.code == 2
