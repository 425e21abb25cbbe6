"""Single-file import pipeline and batch terrain orchestration."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence, Union

from dem2terrain.config import ImportSettings
from dem2terrain.dem.adjacency import (
    Corner,
    place_tile,
    placement_offset,
    reference_corner,
    resolve_neighbors,
)
from dem2terrain.dem.decoder import decode_elevation
from dem2terrain.dem.models import (
    GeoReference,
    NormalizedHeightmap,
    OutputGrid,
    OutputMesh,
    RasterHeader,
    Size3,
    TileBounds,
    TileNeighbors,
)
from dem2terrain.dem.normalize import normalize_elevation
from dem2terrain.dem.resample import MeshResolution, build_grid, build_mesh, terrain_size
from dem2terrain.dem.source import SourceInput, open_source
from dem2terrain.dem.tags import read_georeference

LOGGER = logging.getLogger("dem2terrain.dem.pipeline")

TerrainOutput = Union[OutputGrid, OutputMesh]


class OutputMode(str, Enum):
    """Kind of terrain output built per tile."""

    GRID = "grid"
    MESH = "mesh"


@dataclass(frozen=True)
class ImportResult:
    """Decoded, normalized heightmap plus the metadata read alongside it."""

    source: str
    header: RasterHeader
    georef: GeoReference
    heightmap: NormalizedHeightmap


@dataclass(frozen=True)
class TileEntry:
    """Heightmap awaiting placement; ``georef`` may be missing."""

    handle: Any
    heightmap: NormalizedHeightmap
    georef: GeoReference | None


@dataclass(frozen=True)
class Placement:
    """Tile bounds and neighbours produced by the batch post-pass."""

    bounds: tuple[TileBounds, ...]
    neighbors: tuple[TileNeighbors, ...]
    reference: Corner | None


@dataclass(frozen=True)
class TerrainTile:
    """One successfully built tile of a batch."""

    source: str
    result: ImportResult
    output: TerrainOutput
    size: Size3
    bounds: TileBounds
    neighbors: TileNeighbors


@dataclass(frozen=True)
class BatchResult:
    """Outputs from a batch run; failed sources are listed in ``errors``."""

    tiles: tuple[TerrainTile, ...]
    mode: OutputMode
    reference: Corner | None = None
    errors: Mapping[str, str] = field(default_factory=dict)


def source_label(source: SourceInput, index: int = 0) -> str:
    """Return a stable label for a batch input."""
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, (bytes, bytearray)):
        return f"<bytes:{index}>"
    return str(getattr(source, "name", f"<stream:{index}>"))


def import_heightmap(
    source: SourceInput,
    settings: ImportSettings | None = None,
    *,
    name: str | None = None,
) -> ImportResult:
    """Decode, georeference and normalize one raster source."""
    settings = settings or ImportSettings()
    with open_source(source, name=name) as raster:
        header = raster.header
        label = raster.name
        LOGGER.info(
            "width=%s height=%s bitsPerSample=%s samplesPerPixel=%s tiled=%s",
            header.width,
            header.height,
            header.bits_per_sample,
            header.samples_per_pixel,
            header.is_tiled,
            extra={"source": label},
        )
        georef = read_georeference(raster, width=header.width, height=header.height)
        grid = decode_elevation(raster, header)
    heightmap = normalize_elevation(grid, settings.range_policy, source=label)
    LOGGER.info(
        "elevation min=%s max=%s epsg=%s",
        heightmap.min_elevation,
        heightmap.max_elevation,
        georef.epsg_code,
        extra={"source": label},
    )
    return ImportResult(source=label, header=header, georef=georef, heightmap=heightmap)


def terrain_size_for(result: ImportResult, settings: ImportSettings | None = None) -> Size3:
    """Return the world size of an imported heightmap."""
    settings = settings or ImportSettings()
    return terrain_size(result.heightmap, result.georef, settings.sizing)


def build_terrain_grid(
    result: ImportResult, settings: ImportSettings | None = None
) -> OutputGrid:
    """Resample an imported heightmap onto a snapped terrain grid."""
    settings = settings or ImportSettings()
    return build_grid(
        result.heightmap,
        terrain_size_for(result, settings),
        settings.grid_resolutions,
    )


def build_terrain_mesh(
    result: ImportResult,
    settings: ImportSettings | None = None,
    tier: MeshResolution | None = None,
) -> OutputMesh:
    """Resample and triangulate an imported heightmap."""
    settings = settings or ImportSettings()
    return build_mesh(
        result.heightmap,
        terrain_size_for(result, settings),
        tier or settings.mesh_resolution,
    )


def compose_tiles(entries: Sequence[TileEntry], settings: ImportSettings | None = None) -> Placement:
    """Place tiles relative to the first georeferenced one and link neighbours."""
    settings = settings or ImportSettings()
    reference = reference_corner(entry.georef for entry in entries)
    if entries and reference is None:
        LOGGER.warning("No tile carries georeferencing; placing all tiles at the origin.")
    bounds = tuple(
        place_tile(
            placement_offset(entry.georef, reference),
            terrain_size(entry.heightmap, entry.georef, settings.sizing),
            entry.handle,
        )
        for entry in entries
    )
    neighbors = tuple(resolve_neighbors(bounds, tolerance=settings.neighbor_tolerance))
    return Placement(bounds=bounds, neighbors=neighbors, reference=reference)


def _coerce_jobs(jobs: int, count: int) -> int:
    """Normalize requested worker count for per-file processing."""
    jobs = int(jobs)
    if count <= 0:
        return 1
    if jobs < 0:
        raise ValueError("jobs must be >= 0")
    if jobs == 0:
        cpu_count = os.cpu_count() or 1
        return max(1, min(cpu_count, count))
    return min(jobs, count)


def _run_jobs(
    labels: list[str],
    jobs: int,
    worker: Callable[[int], tuple[ImportResult, TerrainOutput]],
) -> tuple[dict[str, tuple[ImportResult, TerrainOutput]], dict[str, str]]:
    """Run per-file workers serially or via a thread pool, isolating failures."""
    results: dict[str, tuple[ImportResult, TerrainOutput]] = {}
    errors: dict[str, str] = {}

    def record(label: str, call: Callable[[], tuple[ImportResult, TerrainOutput]]) -> None:
        try:
            results[label] = call()
        except Exception as exc:
            LOGGER.error("Import failed: %s", exc, extra={"source": label})
            errors[label] = str(exc)

    if jobs == 1 or len(labels) <= 1:
        for index, label in enumerate(labels):
            record(label, lambda index=index: worker(index))
        return results, errors
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = {label: executor.submit(worker, index) for index, label in enumerate(labels)}
        for label, future in futures.items():
            record(label, future.result)
    return results, errors


def run_batch(
    sources: Sequence[SourceInput],
    settings: ImportSettings | None = None,
    *,
    mode: OutputMode = OutputMode.GRID,
    jobs: int | None = None,
) -> BatchResult:
    """Import every source, build its output, then place and link the tiles.

    A failing source is reported in ``errors`` and does not stop its
    siblings. Placement runs only after every worker has finished.
    """
    settings = settings or ImportSettings()
    labels = [source_label(source, index) for index, source in enumerate(sources)]
    if len(set(labels)) != len(labels):
        raise ValueError("Batch sources must be unique.")

    def worker(index: int) -> tuple[ImportResult, TerrainOutput]:
        result = import_heightmap(sources[index], settings, name=labels[index])
        if mode is OutputMode.MESH:
            return result, build_terrain_mesh(result, settings)
        return result, build_terrain_grid(result, settings)

    worker_count = _coerce_jobs(settings.jobs if jobs is None else jobs, len(labels))
    results, errors = _run_jobs(labels, worker_count, worker)

    built = [label for label in labels if label in results]
    entries = [
        TileEntry(handle=label, heightmap=results[label][0].heightmap, georef=results[label][0].georef)
        for label in built
    ]
    placement = compose_tiles(entries, settings)
    tiles = tuple(
        TerrainTile(
            source=label,
            result=results[label][0],
            output=results[label][1],
            size=terrain_size_for(results[label][0], settings),
            bounds=bounds,
            neighbors=neighbors,
        )
        for label, bounds, neighbors in zip(built, placement.bounds, placement.neighbors)
    )
    LOGGER.info("Built %s tile(s), %s failure(s)", len(tiles), len(errors))
    return BatchResult(
        tiles=tiles,
        mode=mode,
        reference=placement.reference,
        errors={label: errors[label] for label in labels if label in errors},
    )
