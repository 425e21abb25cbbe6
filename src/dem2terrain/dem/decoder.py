"""Decode single-band 16/32-bit raster samples into an elevation grid."""

from __future__ import annotations

import logging
from typing import Protocol

import numpy as np

from dem2terrain.dem.models import SAMPLE_FORMAT_INT, ElevationGrid, RasterHeader
from dem2terrain.errors import UnsupportedRasterFormat

LOGGER = logging.getLogger("dem2terrain.dem.decoder")

SUPPORTED_BITS = (16, 32)
COMPRESSION_NONE = 1


class SampleSource(Protocol):
    """Random-access reader over the sample bytes of one raster."""

    name: str

    @property
    def header(self) -> RasterHeader: ...

    @property
    def tile_count(self) -> int: ...

    def read_row(self, y: int) -> bytes: ...

    def read_tile(self, index: int) -> bytes: ...


def validate_header(header: RasterHeader, *, source: str | None = None) -> None:
    """Reject rasters outside the decodable subset."""
    if header.samples_per_pixel != 1:
        raise UnsupportedRasterFormat(
            f"only single-band rasters are supported, got {header.samples_per_pixel} bands",
            source=source,
        )
    if header.bits_per_sample not in SUPPORTED_BITS:
        raise UnsupportedRasterFormat(
            f"only 16-bit and 32-bit samples are supported, got {header.bits_per_sample} bits",
            source=source,
        )
    if header.compression != COMPRESSION_NONE:
        raise UnsupportedRasterFormat(
            f"compressed rasters are not supported (compression={header.compression})",
            source=source,
        )
    if header.is_tiled and (header.tile_width <= 0 or header.tile_height <= 0):
        raise UnsupportedRasterFormat("tiled raster without tile geometry", source=source)


def sample_dtype(header: RasterHeader) -> np.dtype:
    """Return the on-disk numpy dtype of one sample."""
    if header.bits_per_sample == 32:
        code = "f4"
    elif header.sample_format == SAMPLE_FORMAT_INT:
        code = "i2"
    else:
        code = "u2"
    return np.dtype(header.byte_order + code)


def _samples(raw: bytes, dtype: np.dtype, limit: int) -> np.ndarray:
    """Interpret up to ``limit`` whole samples of ``raw``."""
    count = min(limit, len(raw) // dtype.itemsize)
    return np.frombuffer(raw, dtype=dtype, count=count)


def _decode_striped(
    source: SampleSource, header: RasterHeader, dtype: np.dtype, flipped: np.ndarray
) -> int:
    """Decode row by row; return the number of short rows."""
    truncated = 0
    for y in range(header.height):
        values = _samples(source.read_row(y), dtype, header.width)
        if values.size < header.width:
            truncated += 1
        flipped[y, : values.size] = values
    return truncated


def _decode_tiled(
    source: SampleSource, header: RasterHeader, dtype: np.dtype, flipped: np.ndarray
) -> int:
    """Decode tile by tile through one scratch buffer; return short tiles."""
    tile_width = header.tile_width
    tile_height = header.tile_height
    tile_stride = -(-header.width // tile_width)
    scratch = np.zeros(tile_width * tile_height, dtype=dtype)
    tile = scratch.reshape(tile_height, tile_width)
    truncated = 0
    for index in range(source.tile_count):
        tile_x = tile_width * (index % tile_stride)
        tile_y = tile_height * (index // tile_stride)
        if tile_y >= header.height:
            break
        scratch.fill(0)
        values = _samples(source.read_tile(index), dtype, scratch.size)
        if values.size < scratch.size:
            truncated += 1
        scratch[: values.size] = values
        copy_width = min(tile_width, header.width - tile_x)
        copy_height = min(tile_height, header.height - tile_y)
        flipped[tile_y : tile_y + copy_height, tile_x : tile_x + copy_width] = tile[
            :copy_height, :copy_width
        ]
    return truncated


def decode_elevation(source: SampleSource, header: RasterHeader | None = None) -> ElevationGrid:
    """Decode all samples of ``source`` into a float32 ElevationGrid.

    Source scan row ``y`` lands in output row ``height - 1 - y`` for both
    striped and tiled layouts. Short rows or tiles leave zeros behind.
    """
    header = header or source.header
    validate_header(header, source=source.name)
    dtype = sample_dtype(header)
    grid = np.zeros((header.height, header.width), dtype=np.float32)
    flipped = grid[::-1]
    if header.is_tiled:
        truncated = _decode_tiled(source, header, dtype, flipped)
        unit = "tile"
    else:
        truncated = _decode_striped(source, header, dtype, flipped)
        unit = "row"
    if truncated:
        LOGGER.debug(
            "%s truncated %s(s) decoded with zero fill",
            truncated,
            unit,
            extra={"source": source.name},
        )
    return ElevationGrid(grid)
