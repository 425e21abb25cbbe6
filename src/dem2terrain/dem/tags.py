"""Readers for the auxiliary GeoTIFF tags (pixel scale, tiepoint, GeoKeys, NoData)."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from dem2terrain.dem.models import GeoReference
from dem2terrain.dem.source import TagValue

LOGGER = logging.getLogger("dem2terrain.dem.tags")

MODEL_PIXEL_SCALE_TAG = 33550
MODEL_TIEPOINT_TAG = 33922
GEO_KEY_DIRECTORY_TAG = 34735
GDAL_NODATA_TAG = 42113

PROJECTED_CS_TYPE_GEO_KEY = 3072

_GEOKEY_HEADER_SIZE = 4
_GEOKEY_ENTRY_SIZE = 4
_TIEPOINT_GROUP = 6


class TagSource(Protocol):
    """Anything that can look up tags of an image by numeric code."""

    def tag(self, code: int) -> TagValue: ...


def parse_pixel_scale(values: Sequence[float]) -> tuple[float, float]:
    """Return (pixel_size_x, pixel_size_y), defaulting to 1.0 each."""
    if len(values) < 2:
        return 1.0, 1.0
    return float(values[0]), float(values[1])


def parse_tiepoint(values: Sequence[float]) -> tuple[float, float]:
    """Return the model X/Y of the first tiepoint, defaulting to the origin."""
    if len(values) < _TIEPOINT_GROUP:
        return 0.0, 0.0
    return float(values[3]), float(values[4])


def parse_epsg_code(directory: Sequence[int]) -> int:
    """Scan a GeoKey directory for the projected CS type key.

    The entry's value field is taken as the EPSG code directly, which is
    only meaningful when the key is stored inline (tag location 0).
    Returns 0 when the key is absent.
    """
    if len(directory) < _GEOKEY_HEADER_SIZE:
        return 0
    key_count = int(directory[3])
    offset = _GEOKEY_HEADER_SIZE
    for _ in range(key_count):
        if offset + _GEOKEY_ENTRY_SIZE > len(directory):
            break
        key_id, location, _count, value = (int(v) for v in directory[offset : offset + 4])
        if key_id == PROJECTED_CS_TYPE_GEO_KEY:
            if location != 0:
                LOGGER.debug("GeoKey %s stored in tag %s; using raw value", key_id, location)
            return value
        offset += _GEOKEY_ENTRY_SIZE
    return 0


def parse_nodata(text: str | None) -> tuple[bool, float]:
    """Parse a GDAL NoData string. Returns (has_nodata, value)."""
    if not text:
        return False, 0.0
    cleaned = text.strip().strip("\x00")
    # float() accepts digit separators, the tag format does not
    if not cleaned or "_" in cleaned:
        return False, 0.0
    try:
        return True, float(cleaned)
    except ValueError:
        return False, 0.0


def read_georeference(source: TagSource, *, width: int, height: int) -> GeoReference:
    """Build a GeoReference from whatever GeoTIFF tags the source carries."""
    pixel_size_x, pixel_size_y = parse_pixel_scale(source.tag(MODEL_PIXEL_SCALE_TAG).numbers())
    origin_x, origin_y = parse_tiepoint(source.tag(MODEL_TIEPOINT_TAG).numbers())
    epsg_code = parse_epsg_code(source.tag(GEO_KEY_DIRECTORY_TAG).integers())
    has_nodata, nodata_value = parse_nodata(source.tag(GDAL_NODATA_TAG).text())
    return GeoReference(
        raster_width=width,
        raster_height=height,
        pixel_size_x=pixel_size_x,
        pixel_size_y=pixel_size_y,
        origin_x=origin_x,
        origin_y=origin_y,
        epsg_code=epsg_code,
        has_nodata=has_nodata,
        nodata_value=nodata_value,
    )
