from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
import rasterio

from dem2terrain.dem.models import GeoReference, NormalizedHeightmap, OutputGrid
from dem2terrain.dem.pipeline import OutputMode, import_heightmap, run_batch
from dem2terrain.dem.resample import triangulate
from dem2terrain.export import (
    REPORT_NAME,
    heightmap_metadata,
    write_batch_outputs,
    write_grid_raw16,
    write_heightmap_geotiff,
    write_mesh_npz,
    write_raw16,
)
from tests.utils import write_raster


def _write_tile(path: Path, min_x: float) -> Path:
    data = np.array([[4.0, 3.0], [2.0, 1.0]], dtype=np.float32)
    write_raster(path, data, bounds=(min_x, 0.0, min_x + 20.0, 20.0), crs="EPSG:3067")
    return path


def test_write_raw16(tmp_path: Path) -> None:
    heightmap = NormalizedHeightmap(
        width=2,
        height=1,
        samples=np.array([1, 65535], dtype=np.uint16),
        min_elevation=0.0,
        max_elevation=1.0,
    )

    path = write_raw16(heightmap, tmp_path / "out" / "h.r16")

    assert path.read_bytes() == b"\x01\x00\xff\xff"


def test_write_heightmap_geotiff_is_north_up(tmp_path: Path) -> None:
    result = import_heightmap(_write_tile(tmp_path / "tile.tif", 500.0))

    path = write_heightmap_geotiff(result.heightmap, result.georef, tmp_path / "h.tif")

    with rasterio.open(path) as dataset:
        assert dataset.dtypes == ("uint16",)
        assert dataset.crs.to_epsg() == 3067
        assert dataset.bounds.left == pytest.approx(500.0)
        assert dataset.bounds.top == pytest.approx(20.0)
        assert dataset.read(1).tolist() == [[65535, 43690], [21845, 0]]
        assert float(dataset.tags()["max_elevation"]) == 4.0


def test_write_heightmap_geotiff_rejects_short_buffer(tmp_path: Path) -> None:
    heightmap = NormalizedHeightmap(
        width=2,
        height=2,
        samples=np.zeros(3, dtype=np.uint16),
        min_elevation=0.0,
        max_elevation=1.0,
    )

    with pytest.raises(ValueError):
        write_heightmap_geotiff(heightmap, GeoReference(raster_width=2, raster_height=2), tmp_path / "h.tif")


def test_heightmap_metadata(tmp_path: Path) -> None:
    result = import_heightmap(_write_tile(tmp_path / "tile.tif", 0.0))

    meta = heightmap_metadata(result)

    assert meta["source"] == "tile.tif"
    assert (meta["min_height"], meta["max_height"]) == (1.0, 4.0)
    assert meta["pixel_size_x"] == pytest.approx(10.0)
    assert meta["epsg_code"] == 3067
    assert meta["nodata_value"] is None


def test_write_grid_and_mesh(tmp_path: Path) -> None:
    grid = OutputGrid(
        resolution=2,
        heights=np.array([[0.0, 1.0], [0.5, 1.0]], dtype=np.float32),
        size=(1.0, 1.0, 1.0),
    )
    mesh = triangulate(grid.heights, grid.size)

    grid_path = write_grid_raw16(grid, tmp_path / "grid.r16")
    mesh_path = write_mesh_npz(mesh, tmp_path / "mesh.npz")

    assert np.frombuffer(grid_path.read_bytes(), dtype="<u2").tolist() == [0, 65535, 32768, 65535]
    with np.load(mesh_path) as archive:
        assert archive["vertices"].shape == (4, 3)
        assert archive["triangles"].tolist() == [[0, 2, 1], [1, 2, 3]]
        assert archive["bounds"].shape == (2, 3)


def test_write_batch_outputs(tmp_path: Path) -> None:
    west = _write_tile(tmp_path / "in" / "west.tif", 0.0)
    east = _write_tile(tmp_path / "in" / "east.tif", 20.0)
    batch = run_batch([west, east], mode=OutputMode.MESH)

    report = write_batch_outputs(batch, tmp_path / "out")

    out = tmp_path / "out"
    assert json.loads((out / REPORT_NAME).read_text(encoding="utf-8")) == report
    assert report["mode"] == "mesh"
    assert report["errors"] == {}
    west_entry, east_entry = report["tiles"]
    assert west_entry["output"] == "west_mesh.npz"
    assert west_entry["neighbors"]["right"] == str(east)
    assert east_entry["position"] == pytest.approx([20.0, 0.0, 0.0])
    for stem in ("west", "east"):
        assert (out / f"{stem}_height.r16").stat().st_size == 2 * 2 * 2
        assert (out / f"{stem}_meta.json").exists()
        assert (out / f"{stem}_mesh.npz").exists()


def test_write_batch_outputs_suffixes_repeated_stems(tmp_path: Path) -> None:
    first = _write_tile(tmp_path / "a" / "tile.tif", 0.0)
    second = _write_tile(tmp_path / "b" / "tile.tif", 20.0)
    batch = run_batch([first, second])

    report = write_batch_outputs(batch, tmp_path / "out")

    assert [entry["output"] for entry in report["tiles"]] == ["tile_grid.r16", "tile_1_grid.r16"]
    assert report["tiles"][0]["resolution"] == [33, 33]
    assert (tmp_path / "out" / "tile_1_grid.r16").stat().st_size == 33 * 33 * 2


def test_write_batch_outputs_records_write_failures(tmp_path: Path) -> None:
    west = _write_tile(tmp_path / "in" / "west.tif", 0.0)
    east = _write_tile(tmp_path / "in" / "east.tif", 20.0)
    batch = run_batch([west, east])
    out = tmp_path / "out"
    # a directory in the way makes the heightmap write fail
    (out / "west_height.r16").mkdir(parents=True)

    report = write_batch_outputs(batch, out)

    assert [entry["source"] for entry in report["tiles"]] == [str(east)]
    assert list(report["errors"]) == [str(west)]
    assert (out / "east_grid.r16").exists()
    assert json.loads((out / REPORT_NAME).read_text(encoding="utf-8"))["errors"] == report["errors"]
