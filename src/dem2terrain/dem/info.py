"""DEM inspection helpers."""

from __future__ import annotations

import numpy as np

from dem2terrain.dem.decoder import decode_elevation
from dem2terrain.dem.models import DemInfo, ElevationGrid, GeoReference
from dem2terrain.dem.source import SourceInput, open_source
from dem2terrain.dem.tags import read_georeference


def _nodata_mask(data: np.ndarray, georef: GeoReference) -> np.ndarray:
    """Return a boolean mask where nodata values are present."""
    if not georef.has_nodata:
        return np.zeros(data.shape, dtype=bool)
    if np.isnan(georef.nodata_value):
        return np.isnan(data)
    return data == np.float32(georef.nodata_value)


def _sample_stats(
    grid: ElevationGrid, georef: GeoReference
) -> tuple[float | None, float | None, float | None, float | None]:
    """Return (min, max, nan_ratio, nodata_ratio) for decoded samples."""
    data = grid.data
    if not data.size:
        return None, None, None, None
    nan_ratio = float(np.isnan(data).sum() / data.size)
    nodata = _nodata_mask(data, georef)
    nodata_ratio = float(nodata.sum() / data.size)
    valid = np.isfinite(data) & ~nodata
    if not valid.any():
        return None, None, nan_ratio, nodata_ratio
    values = data[valid]
    return float(values.min()), float(values.max()), nan_ratio, nodata_ratio


def inspect_dem(source: SourceInput, *, sample: bool = False) -> DemInfo:
    """Collect header and georeferencing of a raster, optionally with statistics."""
    with open_source(source) as raster:
        header = raster.header
        georef = read_georeference(raster, width=header.width, height=header.height)
        min_val = max_val = nan_ratio = nodata_ratio = None
        if sample:
            grid = decode_elevation(raster, header)
            min_val, max_val, nan_ratio, nodata_ratio = _sample_stats(grid, georef)
        return DemInfo(
            source=raster.name,
            header=header,
            georef=georef,
            min_elevation=min_val,
            max_elevation=max_val,
            nan_ratio=nan_ratio,
            nodata_ratio=nodata_ratio,
        )
