from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Sequence, Tuple

import numpy as np
import rasterio
import tifffile
from rasterio.transform import from_bounds

from dem2terrain.dem.models import RasterHeader
from dem2terrain.dem.source import TagValue


def write_raster(
    path: Path,
    data: np.ndarray,
    *,
    bounds: Tuple[float, float, float, float],
    crs: str | None = "EPSG:4326",
    nodata: float | None = None,
) -> None:
    height, width = data.shape
    transform = from_bounds(*bounds, width=width, height=height)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype=data.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dataset:
        dataset.write(data, 1)


def geotiff_tags(
    *,
    pixel_scale: Sequence[float] | None = None,
    tiepoint: Sequence[float] | None = None,
    geokeys: Sequence[int] | None = None,
    nodata: str | None = None,
) -> list[tuple[Any, ...]]:
    """Build tifffile ``extratags`` entries for the GeoTIFF tags."""
    tags: list[tuple[Any, ...]] = []
    if pixel_scale is not None:
        tags.append((33550, "d", len(pixel_scale), tuple(pixel_scale), True))
    if tiepoint is not None:
        tags.append((33922, "d", len(tiepoint), tuple(tiepoint), True))
    if geokeys is not None:
        tags.append((34735, "H", len(geokeys), tuple(geokeys), True))
    if nodata is not None:
        tags.append((42113, "s", 0, nodata, True))
    return tags


def write_tiff(
    path: Path,
    data: np.ndarray,
    *,
    tile: Tuple[int, int] | None = None,
    rowsperstrip: int | None = None,
    extratags: Iterable[tuple[Any, ...]] = (),
    byteorder: str = "<",
    photometric: str = "minisblack",
) -> Path:
    """Write an uncompressed TIFF with an explicit strip or tile layout."""
    kwargs: dict[str, Any] = {}
    if tile is not None:
        kwargs["tile"] = tile
    if rowsperstrip is not None:
        kwargs["rowsperstrip"] = rowsperstrip
    path.parent.mkdir(parents=True, exist_ok=True)
    tifffile.imwrite(
        path,
        data,
        byteorder=byteorder,
        photometric=photometric,
        extratags=list(extratags),
        metadata=None,
        **kwargs,
    )
    return path


class FakeSampleSource:
    """In-memory sample source for exercising truncated rows and tiles."""

    def __init__(
        self,
        header: RasterHeader,
        *,
        rows: dict[int, bytes] | None = None,
        tiles: dict[int, bytes] | None = None,
        tile_count: int = 0,
    ) -> None:
        self.name = "fake.tif"
        self._header = header
        self._rows = rows or {}
        self._tiles = tiles or {}
        self._tile_count = tile_count

    @property
    def header(self) -> RasterHeader:
        return self._header

    @property
    def tile_count(self) -> int:
        return self._tile_count

    def read_row(self, y: int) -> bytes:
        return self._rows.get(y, b"")

    def read_tile(self, index: int) -> bytes:
        return self._tiles.get(index, b"")


class FakeTagSource:
    """Tag lookup backed by a dict of TagValues."""

    def __init__(self, tags: dict[int, TagValue] | None = None) -> None:
        self._tags = tags or {}

    def tag(self, code: int) -> TagValue:
        return self._tags.get(code, TagValue.missing())


def with_src_env(base_env: dict[str, str] | None = None) -> dict[str, str]:
    """Return an environment with repo src/ on PYTHONPATH."""
    env = dict(base_env or os.environ)
    repo_root = Path(__file__).resolve().parents[1]
    src_path = repo_root / "src"
    if src_path.exists():
        existing = env.get("PYTHONPATH", "")
        entries = [entry for entry in existing.split(os.pathsep) if entry]
        src_str = str(src_path)
        if src_str not in entries:
            entries.insert(0, src_str)
        env["PYTHONPATH"] = os.pathsep.join(entries)
    return env
