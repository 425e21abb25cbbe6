"""Data models shared by the raster import and terrain build steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

Bounds = Tuple[float, float, float, float]
Size3 = Tuple[float, float, float]

SAMPLE_FORMAT_UINT = 1
SAMPLE_FORMAT_INT = 2
SAMPLE_FORMAT_IEEEFP = 3

FIXED_POINT_MAX = 65535


@dataclass(frozen=True)
class RasterHeader:
    """Image geometry and sample layout of a raster source."""

    width: int
    height: int
    bits_per_sample: int
    sample_format: int
    samples_per_pixel: int
    is_tiled: bool
    tile_width: int = 0
    tile_height: int = 0
    rows_per_strip: int = 0
    byte_order: str = "<"
    compression: int = 1

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_per_sample // 8

    @property
    def row_bytes(self) -> int:
        return self.width * self.bytes_per_sample

    @property
    def tile_bytes(self) -> int:
        return self.tile_width * self.tile_height * self.bytes_per_sample

    def as_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "bits_per_sample": self.bits_per_sample,
            "sample_format": self.sample_format,
            "samples_per_pixel": self.samples_per_pixel,
            "is_tiled": self.is_tiled,
            "tile_width": self.tile_width,
            "tile_height": self.tile_height,
        }


@dataclass(frozen=True)
class GeoReference:
    """Georeferencing metadata read from the auxiliary GeoTIFF tags.

    Bounds assume a north-up raster whose origin is the upper-left corner
    of the upper-left pixel.
    """

    raster_width: int
    raster_height: int
    pixel_size_x: float = 1.0
    pixel_size_y: float = 1.0
    origin_x: float = 0.0
    origin_y: float = 0.0
    epsg_code: int = 0
    has_nodata: bool = False
    nodata_value: float = 0.0

    @property
    def min_x(self) -> float:
        return self.origin_x

    @property
    def max_x(self) -> float:
        return self.origin_x + self.pixel_size_x * self.raster_width

    @property
    def min_y(self) -> float:
        return self.origin_y - self.pixel_size_y * self.raster_height

    @property
    def max_y(self) -> float:
        return self.origin_y

    @property
    def bounds(self) -> Bounds:
        """Return (min_x, min_y, max_x, max_y)."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def as_dict(self) -> dict[str, Any]:
        return {
            "raster_width": self.raster_width,
            "raster_height": self.raster_height,
            "pixel_size_x": self.pixel_size_x,
            "pixel_size_y": self.pixel_size_y,
            "origin_x": self.origin_x,
            "origin_y": self.origin_y,
            "min_x": self.min_x,
            "max_x": self.max_x,
            "min_y": self.min_y,
            "max_y": self.max_y,
            "epsg_code": self.epsg_code,
            "has_nodata": self.has_nodata,
            "nodata_value": self.nodata_value if self.has_nodata else None,
        }


@dataclass(frozen=True)
class ElevationGrid:
    """Decoded float32 elevation samples, shape (height, width).

    Output row ``r`` holds source scan row ``height - 1 - r``.
    """

    data: np.ndarray

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])


@dataclass(frozen=True)
class NormalizedHeightmap:
    """Fixed-point 16-bit heightmap plus the elevation range it encodes.

    ``samples`` is a flat row-major uint16 buffer; it may be shorter than
    ``width * height`` when it was rebuilt from truncated host bytes.
    """

    width: int
    height: int
    samples: np.ndarray
    min_elevation: float
    max_elevation: float

    @property
    def elevation_range(self) -> float:
        return self.max_elevation - self.min_elevation

    @property
    def quantization_step(self) -> float:
        return self.elevation_range / FIXED_POINT_MAX

    def to_bytes(self) -> bytes:
        """Return the samples as little-endian 16-bit values."""
        return np.asarray(self.samples, dtype="<u2").tobytes()

    @classmethod
    def from_bytes(
        cls,
        raw: bytes,
        *,
        width: int,
        height: int,
        min_elevation: float,
        max_elevation: float,
    ) -> "NormalizedHeightmap":
        """Rebuild a heightmap from a little-endian buffer supplied by a host."""
        count = len(raw) // 2
        samples = np.frombuffer(raw, dtype="<u2", count=count).astype(np.uint16)
        return cls(
            width=width,
            height=height,
            samples=samples,
            min_elevation=min_elevation,
            max_elevation=max_elevation,
        )

    def elevations(self) -> np.ndarray:
        """Reconstruct elevations as float64, shape (height, width)."""
        grid = np.asarray(self.samples, dtype=np.float64).reshape(self.height, self.width)
        return self.min_elevation + (grid / FIXED_POINT_MAX) * self.elevation_range


@dataclass(frozen=True)
class OutputGrid:
    """Square grid of [0, 1] heights at a snapped resolution."""

    resolution: int
    heights: np.ndarray
    size: Size3


@dataclass(frozen=True)
class OutputMesh:
    """Triangulated surface built from a resampled heightmap."""

    resolution_x: int
    resolution_z: int
    vertices: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray
    normals: np.ndarray
    bounds_min: np.ndarray
    bounds_max: np.ndarray

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])


@dataclass(frozen=True)
class TileBounds:
    """Planar extents of one placed output tile."""

    min_x: float
    max_x: float
    min_z: float
    max_z: float
    handle: Any = None


@dataclass(frozen=True)
class TileNeighbors:
    """Neighbour handles for one tile; ``None`` means no neighbour."""

    left: Any = None
    right: Any = None
    top: Any = None
    bottom: Any = None


@dataclass(frozen=True)
class DemInfo:
    """Metadata and optional sample statistics of one raster source."""

    source: str
    header: RasterHeader
    georef: GeoReference
    min_elevation: float | None = None
    max_elevation: float | None = None
    nan_ratio: float | None = None
    nodata_ratio: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "header": self.header.as_dict(),
            "georeference": self.georef.as_dict(),
            "min_elevation": self.min_elevation,
            "max_elevation": self.max_elevation,
            "nan_ratio": self.nan_ratio,
            "nodata_ratio": self.nodata_ratio,
        }
