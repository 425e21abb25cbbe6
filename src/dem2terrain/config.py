"""Import settings loading and normalization helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from dem2terrain.contracts import SCHEMA_VERSION, validate_import_settings
from dem2terrain.dem.adjacency import NEIGHBOR_TOLERANCE
from dem2terrain.dem.normalize import RangePolicy
from dem2terrain.dem.resample import (
    SUPPORTED_GRID_RESOLUTIONS,
    MeshResolution,
    TerrainSizing,
)


@dataclass(frozen=True)
class ImportSettings:
    """Normalized settings for the import and terrain build pipeline."""

    range_policy: RangePolicy = field(default_factory=RangePolicy)
    sizing: TerrainSizing = field(default_factory=TerrainSizing)
    grid_resolutions: tuple[int, ...] = SUPPORTED_GRID_RESOLUTIONS
    mesh_resolution: MeshResolution = MeshResolution.FULL
    neighbor_tolerance: float = NEIGHBOR_TOLERANCE
    jobs: int = 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "auto_detect_range": self.range_policy.auto,
            "manual_min_height": self.range_policy.min_elevation,
            "manual_max_height": self.range_policy.max_elevation,
            "use_metadata_size": self.sizing.use_metadata_size,
            "use_metadata_height": self.sizing.use_metadata_height,
            "terrain_width": self.sizing.width,
            "terrain_length": self.sizing.length,
            "terrain_height": self.sizing.height,
            "grid_resolutions": list(self.grid_resolutions),
            "mesh_resolution": self.mesh_resolution.value,
            "neighbor_tolerance": self.neighbor_tolerance,
            "jobs": self.jobs,
        }


def settings_from_mapping(payload: Mapping[str, Any]) -> ImportSettings:
    """Build ImportSettings from a validated flat payload."""
    defaults = ImportSettings()
    policy = defaults.range_policy
    sizing = defaults.sizing
    return ImportSettings(
        range_policy=RangePolicy(
            auto=bool(payload.get("auto_detect_range", policy.auto)),
            min_elevation=float(payload.get("manual_min_height", policy.min_elevation)),
            max_elevation=float(payload.get("manual_max_height", policy.max_elevation)),
        ),
        sizing=TerrainSizing(
            use_metadata_size=bool(payload.get("use_metadata_size", sizing.use_metadata_size)),
            use_metadata_height=bool(
                payload.get("use_metadata_height", sizing.use_metadata_height)
            ),
            width=float(payload.get("terrain_width", sizing.width)),
            length=float(payload.get("terrain_length", sizing.length)),
            height=float(payload.get("terrain_height", sizing.height)),
        ),
        grid_resolutions=tuple(
            sorted(int(value) for value in payload.get("grid_resolutions", defaults.grid_resolutions))
        ),
        mesh_resolution=MeshResolution(payload.get("mesh_resolution", defaults.mesh_resolution)),
        neighbor_tolerance=float(payload.get("neighbor_tolerance", defaults.neighbor_tolerance)),
        jobs=int(payload.get("jobs", defaults.jobs)),
    )


def load_settings(path: Path) -> ImportSettings:
    """Load and validate an import settings file from disk."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, Mapping):
        raise TypeError("Import settings must be a JSON object.")
    validate_import_settings(payload)
    return settings_from_mapping(payload)


def with_manual_range(
    settings: ImportSettings, min_elevation: float, max_elevation: float
) -> ImportSettings:
    """Return a copy of ``settings`` using a fixed elevation range."""
    return replace(settings, range_policy=RangePolicy.manual(min_elevation, max_elevation))
