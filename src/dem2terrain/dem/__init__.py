"""Raster decoding, normalization, resampling and tile placement."""

from dem2terrain.dem.adjacency import place_tile, placement_offset, reference_corner, resolve_neighbors
from dem2terrain.dem.decoder import decode_elevation, validate_header
from dem2terrain.dem.info import inspect_dem
from dem2terrain.dem.models import (
    DemInfo,
    ElevationGrid,
    GeoReference,
    NormalizedHeightmap,
    OutputGrid,
    OutputMesh,
    RasterHeader,
    TileBounds,
    TileNeighbors,
)
from dem2terrain.dem.normalize import RangePolicy, detect_range, normalize_elevation
from dem2terrain.dem.resample import (
    SUPPORTED_GRID_RESOLUTIONS,
    MeshResolution,
    TerrainSizing,
    build_grid,
    build_mesh,
    closest_supported_resolution,
    terrain_size,
)
from dem2terrain.dem.source import TagKind, TagValue, TiffRasterSource, open_source
from dem2terrain.dem.tags import read_georeference

__all__ = [
    "DemInfo",
    "ElevationGrid",
    "GeoReference",
    "MeshResolution",
    "NormalizedHeightmap",
    "OutputGrid",
    "OutputMesh",
    "RangePolicy",
    "RasterHeader",
    "SUPPORTED_GRID_RESOLUTIONS",
    "TagKind",
    "TagValue",
    "TerrainSizing",
    "TileBounds",
    "TileNeighbors",
    "TiffRasterSource",
    "build_grid",
    "build_mesh",
    "closest_supported_resolution",
    "decode_elevation",
    "detect_range",
    "inspect_dem",
    "normalize_elevation",
    "open_source",
    "place_tile",
    "placement_offset",
    "read_georeference",
    "reference_corner",
    "resolve_neighbors",
    "terrain_size",
    "validate_header",
]
