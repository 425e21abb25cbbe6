"""Error types raised by the raster import pipeline."""

from __future__ import annotations


class Dem2TerrainError(RuntimeError):
    """Base class for pipeline failures tied to one source file."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class SourceOpenFailure(Dem2TerrainError):
    """Raised when a source cannot be opened or parsed as a TIFF container."""


class UnsupportedRasterFormat(Dem2TerrainError):
    """Raised for rasters outside the single-band 16/32-bit uncompressed subset."""


class EmptyValidRange(Dem2TerrainError):
    """Raised when automatic range detection finds no finite sample."""
