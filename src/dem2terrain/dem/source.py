"""Random-access raster sources backed by tifffile."""

from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Union

import tifffile

from dem2terrain.dem.models import SAMPLE_FORMAT_UINT, RasterHeader
from dem2terrain.errors import SourceOpenFailure

LOGGER = logging.getLogger("dem2terrain.dem.source")

SourceInput = Union[str, Path, bytes, bytearray, BinaryIO]

_ASCII = 2
_FLOAT = 11
_DOUBLE = 12
_RATIONALS = (5, 10)
_NO_STRIP_LIMIT = 2**32 - 1

# tifffile lets struct and index errors escape on truncated headers
_OPEN_ERRORS = (tifffile.TiffFileError, OSError, ValueError, IndexError, struct.error)


class TagKind(str, Enum):
    """Variant of a tag value returned by ``RasterSource.tag``."""

    MISSING = "missing"
    INTEGERS = "integers"
    FLOATS = "floats"
    DOUBLES = "doubles"
    STRING = "string"


@dataclass(frozen=True)
class TagValue:
    """Tagged union over the value types a TIFF field can hold."""

    kind: TagKind
    values: tuple[Any, ...] | str = ()

    @classmethod
    def missing(cls) -> "TagValue":
        """Return the value used for absent tags."""
        return cls(TagKind.MISSING)

    @property
    def is_missing(self) -> bool:
        """True when the tag was not present."""
        return self.kind is TagKind.MISSING

    def numbers(self) -> tuple[float, ...]:
        """Return numeric values as floats, or an empty tuple for strings."""
        if self.kind in (TagKind.MISSING, TagKind.STRING):
            return ()
        return tuple(float(value) for value in self.values)

    def integers(self) -> tuple[int, ...]:
        """Return integer values, or an empty tuple for other kinds."""
        if self.kind is not TagKind.INTEGERS:
            return ()
        return tuple(int(value) for value in self.values)

    def text(self) -> str | None:
        """Return the string value, or None for non-string tags."""
        if self.kind is not TagKind.STRING:
            return None
        return str(self.values)


def _as_tuple(value: Any) -> tuple[Any, ...]:
    """Widen scalars and arrays to a tuple."""
    if isinstance(value, (tuple, list)):
        return tuple(value)
    if hasattr(value, "tolist"):
        listed = value.tolist()
        return tuple(listed) if isinstance(listed, list) else (listed,)
    return (value,)


def tag_value_from_field(datatype: int, value: Any) -> TagValue:
    """Convert a raw tifffile tag payload into a TagValue."""
    if datatype == _ASCII or isinstance(value, (str, bytes)):
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        return TagValue(TagKind.STRING, str(value).rstrip("\x00"))
    values = _as_tuple(value)
    if datatype == _DOUBLE:
        return TagValue(TagKind.DOUBLES, tuple(float(v) for v in values))
    if datatype == _FLOAT:
        return TagValue(TagKind.FLOATS, tuple(float(v) for v in values))
    if datatype in _RATIONALS:
        pairs = zip(values[0::2], values[1::2])
        return TagValue(
            TagKind.DOUBLES,
            tuple(num / den if den else 0.0 for num, den in pairs),
        )
    return TagValue(TagKind.INTEGERS, tuple(int(v) for v in values))


def _first(value: Any, default: int) -> int:
    """Return the first element of a per-sample tag value."""
    if value is None:
        return default
    if isinstance(value, (tuple, list)):
        return int(value[0]) if value else default
    return int(value)


class TiffRasterSource:
    """Read-only view over the first image of a TIFF container.

    Exposes tag lookup by numeric code plus per-row and per-tile reads of
    uncompressed sample bytes. Use as a context manager.
    """

    def __init__(self, tif: tifffile.TiffFile, name: str) -> None:
        self.name = name
        self._tif = tif
        self._page = tif.pages[0]
        self._header = self._read_header()
        self._strip_index = -1
        self._strip_bytes = b""

    def __enter__(self) -> "TiffRasterSource":
        """Return the source itself."""
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Close the underlying container."""
        self.close()

    def close(self) -> None:
        """Close the underlying TIFF file."""
        self._tif.close()

    @property
    def header(self) -> RasterHeader:
        """Image geometry and sample layout of the first image."""
        return self._header

    @property
    def tile_count(self) -> int:
        """Number of strips or tiles in the first image."""
        return len(self._page.dataoffsets)

    def _read_header(self) -> RasterHeader:
        """Build a RasterHeader from the first page."""
        page = self._page
        height = int(page.imagelength)
        rows_per_strip = _first(getattr(page, "rowsperstrip", None), height)
        if rows_per_strip <= 0 or rows_per_strip >= _NO_STRIP_LIMIT:
            rows_per_strip = height
        is_tiled = bool(page.is_tiled)
        return RasterHeader(
            width=int(page.imagewidth),
            height=height,
            bits_per_sample=_first(page.bitspersample, 1),
            sample_format=_first(page.sampleformat, SAMPLE_FORMAT_UINT),
            samples_per_pixel=_first(page.samplesperpixel, 1),
            is_tiled=is_tiled,
            tile_width=int(page.tilewidth) if is_tiled else 0,
            tile_height=int(page.tilelength) if is_tiled else 0,
            rows_per_strip=min(rows_per_strip, height),
            byte_order=self._tif.byteorder,
            compression=int(page.compression),
        )

    def tag(self, code: int) -> TagValue:
        """Look up a tag of the first image by its numeric code."""
        field = self._page.tags.get(code)
        if field is None:
            return TagValue.missing()
        return tag_value_from_field(int(field.dtype), field.value)

    def _read_segment(self, index: int, expected: int) -> bytes:
        offsets = self._page.dataoffsets
        counts = self._page.databytecounts
        if index >= len(offsets) or index >= len(counts):
            return b""
        offset = int(offsets[index])
        count = min(expected, int(counts[index]))
        if offset <= 0 or count <= 0:
            return b""
        handle = self._tif.filehandle
        handle.seek(offset)
        data = handle.read(count)
        if len(data) < expected:
            LOGGER.debug(
                "Segment %s short by %s bytes",
                index,
                expected - len(data),
                extra={"source": self.name},
            )
        return data

    def read_row(self, y: int) -> bytes:
        """Return the sample bytes of scan row ``y`` of a striped image."""
        header = self._header
        rows = header.rows_per_strip
        strip = y // rows
        if strip != self._strip_index:
            strip_rows = min(rows, header.height - strip * rows)
            self._strip_bytes = self._read_segment(strip, strip_rows * header.row_bytes)
            self._strip_index = strip
        start = (y - strip * rows) * header.row_bytes
        return self._strip_bytes[start : start + header.row_bytes]

    def read_tile(self, index: int) -> bytes:
        """Return up to one full tile of sample bytes for tile ``index``."""
        return self._read_segment(index, self._header.tile_bytes)


def _source_name(source: SourceInput) -> str:
    """Return a display name for a source input."""
    if isinstance(source, (str, Path)):
        return Path(source).name
    if isinstance(source, (bytes, bytearray)):
        return "<bytes>"
    return str(getattr(source, "name", "<stream>"))


def open_source(source: SourceInput, *, name: str | None = None) -> TiffRasterSource:
    """Open a path, raw bytes or binary stream as a raster source."""
    label = name or _source_name(source)
    handle: Any = source
    if isinstance(source, (bytes, bytearray)):
        handle = io.BytesIO(bytes(source))
    elif isinstance(source, Path):
        handle = str(source)
    try:
        tif = tifffile.TiffFile(handle)
    except _OPEN_ERRORS as exc:
        raise SourceOpenFailure(f"cannot open raster ({exc})", source=label) from exc
    try:
        if not len(tif.pages):
            raise SourceOpenFailure("container holds no images", source=label)
        return TiffRasterSource(tif, label)
    except SourceOpenFailure:
        tif.close()
        raise
    except _OPEN_ERRORS as exc:
        tif.close()
        raise SourceOpenFailure(f"cannot read first image ({exc})", source=label) from exc
