from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from dem2terrain.config import (
    ImportSettings,
    load_settings,
    settings_from_mapping,
    with_manual_range,
)
from dem2terrain.contracts import validate_import_settings
from dem2terrain.dem.resample import SUPPORTED_GRID_RESOLUTIONS, MeshResolution


def test_defaults_validate_against_schema() -> None:
    validate_import_settings(ImportSettings().as_dict())


def test_load_settings(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "auto_detect_range": False,
                "manual_min_height": -20,
                "manual_max_height": 1800.5,
                "use_metadata_size": False,
                "terrain_width": 2000,
                "grid_resolutions": [1025, 257, 513],
                "mesh_resolution": "quarter",
                "jobs": 0,
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert not settings.range_policy.auto
    assert settings.range_policy.min_elevation == -20.0
    assert settings.range_policy.max_elevation == 1800.5
    assert not settings.sizing.use_metadata_size
    assert settings.sizing.use_metadata_height
    assert settings.sizing.width == 2000.0
    assert settings.sizing.length == 6000.0
    assert settings.grid_resolutions == (257, 513, 1025)
    assert settings.mesh_resolution is MeshResolution.QUARTER
    assert settings.jobs == 0


def test_load_settings_rejects_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"terrain_widht": 10}), encoding="utf-8")

    with pytest.raises(jsonschema.ValidationError):
        load_settings(path)


def test_load_settings_rejects_bad_values(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"mesh_resolution": "sixteenth"}), encoding="utf-8")

    with pytest.raises(jsonschema.ValidationError):
        load_settings(path)


def test_load_settings_requires_object(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(TypeError):
        load_settings(path)


def test_mapping_round_trip() -> None:
    settings = with_manual_range(ImportSettings(jobs=4), 5.0, 50.0)

    restored = settings_from_mapping(settings.as_dict())

    assert restored == settings
    assert restored.grid_resolutions == SUPPORTED_GRID_RESOLUTIONS


def test_with_manual_range_keeps_other_fields() -> None:
    settings = ImportSettings(neighbor_tolerance=0.5)

    updated = with_manual_range(settings, 1.0, 2.0)

    assert settings.range_policy.auto
    assert not updated.range_policy.auto
    assert updated.neighbor_tolerance == 0.5
