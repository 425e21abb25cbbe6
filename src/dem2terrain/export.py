"""Writers for heightmaps, terrain outputs and batch reports."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.errors import CRSError, RasterioError
from rasterio.transform import from_origin

from dem2terrain.dem.models import (
    FIXED_POINT_MAX,
    GeoReference,
    NormalizedHeightmap,
    OutputGrid,
    OutputMesh,
)
from dem2terrain.dem.pipeline import BatchResult, ImportResult, TerrainTile

LOGGER = logging.getLogger("dem2terrain.export")

REPORT_NAME = "terrain_report.json"

WRITE_ERRORS = (OSError, RasterioError)


def write_raw16(heightmap: NormalizedHeightmap, path: Path) -> Path:
    """Write little-endian 16-bit samples with no header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(heightmap.to_bytes())
    return path


def _crs_for(epsg_code: int) -> CRS | None:
    """Return a rasterio CRS for an EPSG code, or None when unknown."""
    if not epsg_code:
        return None
    try:
        return CRS.from_epsg(epsg_code)
    except CRSError:
        LOGGER.warning("Unknown EPSG code %s; writing without CRS.", epsg_code)
        return None


def write_heightmap_geotiff(
    heightmap: NormalizedHeightmap, georef: GeoReference, path: Path
) -> Path:
    """Write a single-band uint16 GeoTIFF, north-up, with the source georeferencing."""
    samples = np.asarray(heightmap.samples, dtype=np.uint16)
    if samples.size != heightmap.width * heightmap.height:
        raise ValueError("Heightmap buffer does not match its dimensions.")
    data = np.flipud(samples.reshape(heightmap.height, heightmap.width))
    transform = from_origin(georef.origin_x, georef.origin_y, georef.pixel_size_x, georef.pixel_size_y)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=heightmap.height,
        width=heightmap.width,
        count=1,
        dtype="uint16",
        crs=_crs_for(georef.epsg_code),
        transform=transform,
    ) as dataset:
        dataset.write(data, 1)
        dataset.update_tags(
            min_elevation=str(heightmap.min_elevation),
            max_elevation=str(heightmap.max_elevation),
        )
    return path


def heightmap_metadata(result: ImportResult) -> dict[str, Any]:
    """Metadata record stored next to an exported heightmap."""
    georef = result.georef
    heightmap = result.heightmap
    return {
        "source": result.source,
        "min_height": heightmap.min_elevation,
        "max_height": heightmap.max_elevation,
        "raster_width": heightmap.width,
        "raster_height": heightmap.height,
        "pixel_size_x": georef.pixel_size_x,
        "pixel_size_y": georef.pixel_size_y,
        "origin_x": georef.origin_x,
        "origin_y": georef.origin_y,
        "min_x": georef.min_x,
        "max_x": georef.max_x,
        "min_y": georef.min_y,
        "max_y": georef.max_y,
        "epsg_code": georef.epsg_code,
        "has_nodata": georef.has_nodata,
        "nodata_value": georef.nodata_value if georef.has_nodata else None,
    }


def write_metadata(result: ImportResult, path: Path) -> Path:
    """Write the heightmap metadata sidecar as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(heightmap_metadata(result), indent=2), encoding="utf-8")
    return path


def write_grid_raw16(grid: OutputGrid, path: Path) -> Path:
    """Write a terrain grid as little-endian 16-bit samples."""
    samples = np.rint(np.clip(grid.heights, 0.0, 1.0) * FIXED_POINT_MAX).astype("<u2")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(samples.tobytes())
    return path


def write_mesh_npz(mesh: OutputMesh, path: Path) -> Path:
    """Write mesh buffers to a numpy ``.npz`` archive."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        np.savez(
            handle,
            vertices=mesh.vertices,
            uvs=mesh.uvs,
            triangles=mesh.triangles,
            normals=mesh.normals,
            bounds=np.stack([mesh.bounds_min, mesh.bounds_max]),
        )
    return path


def _tile_stems(sources: list[str]) -> dict[str, str]:
    """Unique file stems per source, suffixing repeated names."""
    stems: dict[str, str] = {}
    seen: dict[str, int] = {}
    for source in sources:
        stem = Path(source).stem or "tile"
        count = seen.get(stem, 0)
        seen[stem] = count + 1
        stems[source] = stem if count == 0 else f"{stem}_{count}"
    return stems


def _write_tile(tile: TerrainTile, output_dir: Path, stem: str) -> tuple[Path, list[int]]:
    """Write the heightmap, sidecar and terrain output of one tile."""
    write_raw16(tile.result.heightmap, output_dir / f"{stem}_height.r16")
    write_metadata(tile.result, output_dir / f"{stem}_meta.json")
    if isinstance(tile.output, OutputMesh):
        path = write_mesh_npz(tile.output, output_dir / f"{stem}_mesh.npz")
        return path, [tile.output.resolution_x, tile.output.resolution_z]
    path = write_grid_raw16(tile.output, output_dir / f"{stem}_grid.r16")
    return path, [tile.output.resolution, tile.output.resolution]


def write_batch_outputs(batch: BatchResult, output_dir: Path) -> dict[str, Any]:
    """Write per-tile outputs and the batch report; return the report payload."""
    output_dir.mkdir(parents=True, exist_ok=True)
    stems = _tile_stems([tile.source for tile in batch.tiles])
    tiles_payload = []
    write_errors: dict[str, str] = {}
    for tile in batch.tiles:
        stem = stems[tile.source]
        try:
            output_path, resolution = _write_tile(tile, output_dir, stem)
        except WRITE_ERRORS as exc:
            LOGGER.error("Write failed: %s", exc, extra={"source": tile.source})
            write_errors[tile.source] = str(exc)
            continue
        neighbors = tile.neighbors
        tiles_payload.append(
            {
                "source": tile.source,
                "output": output_path.name,
                "resolution": resolution,
                "size": list(tile.size),
                "position": [tile.bounds.min_x, 0.0, tile.bounds.min_z],
                "neighbors": {
                    "left": neighbors.left,
                    "right": neighbors.right,
                    "top": neighbors.top,
                    "bottom": neighbors.bottom,
                },
            }
        )
    report = {
        "mode": batch.mode.value,
        "reference": list(batch.reference) if batch.reference else None,
        "tiles": tiles_payload,
        "errors": {**batch.errors, **write_errors},
    }
    (output_dir / REPORT_NAME).write_text(json.dumps(report, indent=2), encoding="utf-8")
    LOGGER.info("Wrote %s tile(s) to %s", len(tiles_payload), output_dir)
    return report
