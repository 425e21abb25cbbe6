from __future__ import annotations

from dem2terrain.dem.adjacency import (
    place_tile,
    placement_offset,
    ranges_overlap,
    reference_corner,
    resolve_neighbors,
)
from dem2terrain.dem.models import GeoReference, TileBounds


def _tile(min_x: float, max_x: float, min_z: float, max_z: float, handle: str) -> TileBounds:
    return TileBounds(min_x=min_x, max_x=max_x, min_z=min_z, max_z=max_z, handle=handle)


def test_ranges_overlap_is_open() -> None:
    assert ranges_overlap(0.0, 10.0, 5.0, 15.0)
    assert not ranges_overlap(0.0, 10.0, 10.0, 20.0)


def test_row_of_three_tiles() -> None:
    tiles = [
        _tile(0.0, 100.0, 0.0, 100.0, "a"),
        _tile(100.0, 200.0, 0.0, 100.0, "b"),
        _tile(200.0, 300.0, 0.0, 100.0, "c"),
    ]

    a, b, c = resolve_neighbors(tiles)

    assert (a.left, a.right) == (None, "b")
    assert (b.left, b.right) == ("a", "c")
    assert (c.left, c.right) == ("b", None)
    assert all(n.top is None and n.bottom is None for n in (a, b, c))


def test_two_by_two_block() -> None:
    tiles = [
        _tile(0.0, 10.0, 0.0, 10.0, "sw"),
        _tile(10.0, 20.0, 0.0, 10.0, "se"),
        _tile(0.0, 10.0, 10.0, 20.0, "nw"),
        _tile(10.0, 20.0, 10.0, 20.0, "ne"),
    ]

    sw, se, nw, ne = resolve_neighbors(tiles)

    assert (sw.right, sw.top, sw.left, sw.bottom) == ("se", "nw", None, None)
    assert (ne.left, ne.bottom, ne.right, ne.top) == ("nw", "se", None, None)
    assert (se.left, se.top) == ("sw", "ne")
    assert (nw.right, nw.bottom) == ("ne", "sw")


def test_diagonal_tiles_are_not_neighbours() -> None:
    tiles = [_tile(0.0, 10.0, 0.0, 10.0, "a"), _tile(10.0, 20.0, 10.0, 20.0, "b")]

    for neighbors in resolve_neighbors(tiles):
        assert neighbors.left is neighbors.right is neighbors.top is neighbors.bottom is None


def test_tolerance_window() -> None:
    near = [_tile(0.0, 10.0, 0.0, 10.0, "a"), _tile(10.05, 20.0, 0.0, 10.0, "b")]
    far = [_tile(0.0, 10.0, 0.0, 10.0, "a"), _tile(10.2, 20.0, 0.0, 10.0, "b")]

    assert resolve_neighbors(near)[0].right == "b"
    assert resolve_neighbors(far)[0].right is None
    assert resolve_neighbors(far, tolerance=0.5)[0].right == "b"


def test_last_match_wins() -> None:
    tiles = [
        _tile(0.0, 10.0, 0.0, 10.0, "a"),
        _tile(10.0, 20.0, 0.0, 5.0, "b"),
        _tile(10.0, 20.0, 5.0, 10.0, "c"),
    ]

    assert resolve_neighbors(tiles)[0].right == "c"


def test_reference_and_offsets() -> None:
    common = dict(raster_width=4, raster_height=4, pixel_size_x=25.0, pixel_size_y=25.0)
    first = GeoReference(origin_x=1000.0, origin_y=2100.0, **common)
    second = GeoReference(origin_x=1100.0, origin_y=2100.0, **common)

    reference = reference_corner([None, first, second])

    assert reference == (1000.0, 2000.0)
    assert placement_offset(first, reference) == (0.0, 0.0)
    assert placement_offset(second, reference) == (100.0, 0.0)
    assert placement_offset(None, reference) == (0.0, 0.0)
    assert placement_offset(second, None) == (0.0, 0.0)
    assert reference_corner([None, None]) is None


def test_place_tile() -> None:
    bounds = place_tile((100.0, 50.0), (30.0, 5.0, 40.0), handle="t")

    assert bounds == TileBounds(min_x=100.0, max_x=130.0, min_z=50.0, max_z=90.0, handle="t")
