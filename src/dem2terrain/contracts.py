"""Schema validation helpers for settings files."""

from __future__ import annotations

import json
from importlib import resources
from typing import Any, Mapping

import jsonschema

SCHEMA_VERSION = "1"


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema bundled in the package."""
    with resources.files("dem2terrain.schemas").joinpath(name).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def validate_import_settings(payload: Mapping[str, Any]) -> None:
    """Validate an import settings payload against the schema."""
    schema = _load_schema("import_settings.schema.json")
    jsonschema.validate(dict(payload), schema)
