"""Nearest-neighbour resampling of heightmaps into terrain grids and meshes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from dem2terrain.dem.models import (
    FIXED_POINT_MAX,
    GeoReference,
    NormalizedHeightmap,
    OutputGrid,
    OutputMesh,
    Size3,
)
from dem2terrain.dem.normalize import RANGE_EPSILON

LOGGER = logging.getLogger("dem2terrain.dem.resample")

SUPPORTED_GRID_RESOLUTIONS: tuple[int, ...] = (33, 65, 129, 257, 513, 1025, 2049, 4097)
MIN_MESH_RESOLUTION = 2

_UP = np.array([0.0, 1.0, 0.0], dtype=np.float32)


class MeshResolution(str, Enum):
    """Mesh density relative to the source raster."""

    FULL = "full"
    HALF = "half"
    QUARTER = "quarter"
    EIGHTH = "eighth"

    @property
    def divisor(self) -> int:
        return {"full": 1, "half": 2, "quarter": 4, "eighth": 8}[self.value]


@dataclass(frozen=True)
class TerrainSizing:
    """World-space size policy for generated terrain."""

    use_metadata_size: bool = True
    use_metadata_height: bool = True
    width: float = 6000.0
    length: float = 6000.0
    height: float = 100.0


def closest_supported_resolution(
    size: int, resolutions: Sequence[int] = SUPPORTED_GRID_RESOLUTIONS
) -> int:
    """Snap ``size`` to the nearest entry of ``resolutions``.

    Ties keep the earlier entry.
    """
    if not resolutions:
        raise ValueError("At least one grid resolution is required.")
    best = resolutions[0]
    best_diff = abs(size - best)
    for candidate in resolutions[1:]:
        diff = abs(size - candidate)
        if diff < best_diff:
            best = candidate
            best_diff = diff
    return best


def mesh_resolution(width: int, height: int, tier: MeshResolution) -> tuple[int, int]:
    """Return the (x, z) vertex counts for a mesh tier."""
    divisor = tier.divisor
    return (
        max(MIN_MESH_RESOLUTION, width // divisor),
        max(MIN_MESH_RESOLUTION, height // divisor),
    )


def sample_indices(count: int, source_size: int) -> np.ndarray:
    """Map ``count`` evenly spaced output cells onto source pixel indices."""
    if count <= 1:
        return np.zeros(max(count, 0), dtype=np.int64)
    positions = np.arange(count, dtype=np.float64) / (count - 1)
    return np.rint(positions * (source_size - 1)).astype(np.int64)


def sample_heights(
    heightmap: NormalizedHeightmap, resolution_x: int, resolution_z: int
) -> np.ndarray:
    """Sample [0, 1] heights of shape (resolution_z, resolution_x).

    Indices that fall outside the sample buffer read as 0.
    """
    cols = sample_indices(resolution_x, heightmap.width)
    rows = sample_indices(resolution_z, heightmap.height)
    flat = rows[:, None] * heightmap.width + cols[None, :]
    samples = np.asarray(heightmap.samples).ravel()
    valid = (flat >= 0) & (flat < samples.size)
    heights = np.zeros(flat.shape, dtype=np.float32)
    heights[valid] = samples[flat[valid]] / FIXED_POINT_MAX
    if not valid.all():
        LOGGER.debug("%s resampled cells outside the sample buffer", int((~valid).sum()))
    return heights


def terrain_size(
    heightmap: NormalizedHeightmap,
    georef: GeoReference | None,
    sizing: TerrainSizing | None = None,
) -> Size3:
    """Return the (x, y, z) world size for a heightmap."""
    sizing = sizing or TerrainSizing()
    size_x, size_z = sizing.width, sizing.length
    if georef is not None and sizing.use_metadata_size:
        size_x = heightmap.width * georef.pixel_size_x
        size_z = heightmap.height * georef.pixel_size_y
    size_y = sizing.height
    if sizing.use_metadata_height:
        size_y = max(RANGE_EPSILON, heightmap.elevation_range)
    return (float(size_x), float(size_y), float(size_z))


def build_grid(
    heightmap: NormalizedHeightmap,
    size: Size3,
    resolutions: Sequence[int] = SUPPORTED_GRID_RESOLUTIONS,
) -> OutputGrid:
    """Resample a heightmap onto a square grid at a snapped resolution."""
    resolution = closest_supported_resolution(min(heightmap.width, heightmap.height), resolutions)
    heights = sample_heights(heightmap, resolution, resolution)
    return OutputGrid(resolution=resolution, heights=heights, size=size)


def vertex_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Area-weighted vertex normals; isolated or degenerate vertices point up."""
    v0 = vertices[triangles[:, 0]]
    v1 = vertices[triangles[:, 1]]
    v2 = vertices[triangles[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0)
    normals = np.zeros(vertices.shape, dtype=np.float64)
    for corner in range(3):
        np.add.at(normals, triangles[:, corner], face_normals)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    degenerate = lengths[:, 0] <= 0.0
    lengths[degenerate] = 1.0
    normals /= lengths
    normals[degenerate] = _UP
    return normals.astype(np.float32)


def grid_triangles(resolution_x: int, resolution_z: int) -> np.ndarray:
    """Two triangles per cell: (bl, tl, br) then (br, tl, tr)."""
    rows = np.arange(resolution_z - 1, dtype=np.int32)[:, None] * resolution_x
    cols = np.arange(resolution_x - 1, dtype=np.int32)[None, :]
    bottom_left = (rows + cols).ravel()
    bottom_right = bottom_left + 1
    top_left = bottom_left + resolution_x
    top_right = top_left + 1
    triangles = np.empty((bottom_left.size * 2, 3), dtype=np.int32)
    triangles[0::2] = np.stack([bottom_left, top_left, bottom_right], axis=1)
    triangles[1::2] = np.stack([bottom_right, top_left, top_right], axis=1)
    return triangles


def triangulate(heights: np.ndarray, size: Size3) -> OutputMesh:
    """Build vertices, UVs, triangles, normals and bounds from a height grid."""
    resolution_z, resolution_x = heights.shape
    if resolution_x < MIN_MESH_RESOLUTION or resolution_z < MIN_MESH_RESOLUTION:
        raise ValueError("Mesh resolution must be at least 2x2.")
    size_x, size_y, size_z = size
    u = np.arange(resolution_x, dtype=np.float64) / (resolution_x - 1)
    v = np.arange(resolution_z, dtype=np.float64) / (resolution_z - 1)
    uu, vv = np.meshgrid(u, v)
    vertices = np.stack(
        [uu * size_x, heights.astype(np.float64) * size_y, vv * size_z], axis=-1
    ).reshape(-1, 3)
    uvs = np.stack([uu, vv], axis=-1).reshape(-1, 2).astype(np.float32)
    triangles = grid_triangles(resolution_x, resolution_z)
    normals = vertex_normals(vertices, triangles)
    vertices = vertices.astype(np.float32)
    return OutputMesh(
        resolution_x=resolution_x,
        resolution_z=resolution_z,
        vertices=vertices,
        uvs=uvs,
        triangles=triangles,
        normals=normals,
        bounds_min=vertices.min(axis=0),
        bounds_max=vertices.max(axis=0),
    )


def build_mesh(
    heightmap: NormalizedHeightmap,
    size: Size3,
    tier: MeshResolution = MeshResolution.FULL,
) -> OutputMesh:
    """Resample a heightmap at a mesh tier and triangulate it."""
    resolution_x, resolution_z = mesh_resolution(heightmap.width, heightmap.height, tier)
    heights = sample_heights(heightmap, resolution_x, resolution_z)
    return triangulate(heights, size)
