"""Elevation range detection and 16-bit fixed-point normalization."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from dem2terrain.dem.models import FIXED_POINT_MAX, ElevationGrid, NormalizedHeightmap
from dem2terrain.errors import EmptyValidRange

LOGGER = logging.getLogger("dem2terrain.dem.normalize")

RANGE_EPSILON = 1e-4


@dataclass(frozen=True)
class RangePolicy:
    """How the min/max elevation for normalization is chosen."""

    auto: bool = True
    min_elevation: float = 0.0
    max_elevation: float = 500.0

    @classmethod
    def manual(cls, min_elevation: float, max_elevation: float) -> "RangePolicy":
        """Return a policy with a fixed elevation range."""
        return cls(auto=False, min_elevation=min_elevation, max_elevation=max_elevation)


def detect_range(grid: ElevationGrid, *, source: str | None = None) -> tuple[float, float]:
    """Return (min, max) over the finite samples of ``grid``."""
    finite = np.isfinite(grid.data)
    if not finite.any():
        raise EmptyValidRange("no finite elevation samples", source=source)
    values = grid.data[finite]
    return float(values.min()), float(values.max())


def resolve_range(
    grid: ElevationGrid, policy: RangePolicy, *, source: str | None = None
) -> tuple[float, float]:
    """Return the (min, max) elevation range selected by ``policy``."""
    if policy.auto:
        return detect_range(grid, source=source)
    return float(policy.min_elevation), float(policy.max_elevation)


def quantize(data: np.ndarray, min_elevation: float, max_elevation: float) -> np.ndarray:
    """Map elevations to a flat row-major uint16 buffer.

    Values outside [min, max] clamp to the ends; NaN maps to 0.
    """
    span = max(RANGE_EPSILON, max_elevation - min_elevation)
    scaled = (np.asarray(data, dtype=np.float64) - min_elevation) / span
    scaled = np.nan_to_num(scaled, nan=0.0, posinf=1.0, neginf=0.0)
    np.clip(scaled, 0.0, 1.0, out=scaled)
    return np.rint(scaled * FIXED_POINT_MAX).astype(np.uint16).ravel()


def normalize_elevation(
    grid: ElevationGrid,
    policy: RangePolicy | None = None,
    *,
    source: str | None = None,
) -> NormalizedHeightmap:
    """Normalize a decoded grid into a NormalizedHeightmap."""
    policy = policy or RangePolicy()
    min_elevation, max_elevation = resolve_range(grid, policy, source=source)
    LOGGER.debug(
        "Elevation range %s..%s (%s)",
        min_elevation,
        max_elevation,
        "auto" if policy.auto else "manual",
        extra={"source": source},
    )
    return NormalizedHeightmap(
        width=grid.width,
        height=grid.height,
        samples=quantize(grid.data, min_elevation, max_elevation),
        min_elevation=min_elevation,
        max_elevation=max_elevation,
    )
