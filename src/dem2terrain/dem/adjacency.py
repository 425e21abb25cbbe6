"""Placement of terrain tiles in a shared plane and neighbour detection."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from dem2terrain.dem.models import GeoReference, Size3, TileBounds, TileNeighbors

LOGGER = logging.getLogger("dem2terrain.dem.adjacency")

NEIGHBOR_TOLERANCE = 0.1

Corner = tuple[float, float]


def ranges_overlap(a_min: float, a_max: float, b_min: float, b_max: float) -> bool:
    """Return True when two open intervals overlap."""
    return a_min < b_max and b_min < a_max


def reference_corner(georefs: Iterable[GeoReference | None]) -> Corner | None:
    """Return the (min_x, min_y) corner of the first georeferenced tile."""
    for georef in georefs:
        if georef is not None:
            return (georef.min_x, georef.min_y)
    return None


def placement_offset(georef: GeoReference | None, reference: Corner | None) -> Corner:
    """Offset of a tile relative to the batch reference corner.

    Tiles without georeferencing, or batches without a reference, sit at
    the origin.
    """
    if georef is None or reference is None:
        return (0.0, 0.0)
    return (georef.min_x - reference[0], georef.min_y - reference[1])


def place_tile(offset: Corner, size: Size3, handle: Any = None) -> TileBounds:
    """Planar bounds of a tile of ``size`` placed at ``offset`` (x, z)."""
    offset_x, offset_z = offset
    return TileBounds(
        min_x=offset_x,
        max_x=offset_x + size[0],
        min_z=offset_z,
        max_z=offset_z + size[2],
        handle=handle,
    )


def resolve_neighbors(
    tiles: Sequence[TileBounds], *, tolerance: float = NEIGHBOR_TOLERANCE
) -> list[TileNeighbors]:
    """Assign left/right/top/bottom neighbours by all-pairs edge matching.

    Returns one TileNeighbors per input tile, in input order. When several
    tiles qualify for one side, the last one scanned wins.
    """
    assignments: list[TileNeighbors] = []
    for index, a in enumerate(tiles):
        left = right = top = bottom = None
        for other, b in enumerate(tiles):
            if other == index:
                continue
            if ranges_overlap(a.min_z, a.max_z, b.min_z, b.max_z):
                if abs(b.min_x - a.max_x) < tolerance:
                    right = b.handle
                if abs(a.min_x - b.max_x) < tolerance:
                    left = b.handle
            if ranges_overlap(a.min_x, a.max_x, b.min_x, b.max_x):
                if abs(b.min_z - a.max_z) < tolerance:
                    top = b.handle
                if abs(a.min_z - b.max_z) < tolerance:
                    bottom = b.handle
        assignments.append(TileNeighbors(left=left, right=right, top=top, bottom=bottom))
    LOGGER.debug("Resolved neighbours for %s tiles", len(tiles))
    return assignments
