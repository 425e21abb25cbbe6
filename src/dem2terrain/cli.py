"""Command-line interface for dem2terrain."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path

import jsonschema

from dem2terrain import __version__
from dem2terrain.config import ImportSettings, load_settings, with_manual_range
from dem2terrain.dem.info import inspect_dem
from dem2terrain.dem.models import DemInfo
from dem2terrain.dem.pipeline import OutputMode, import_heightmap, run_batch
from dem2terrain.dem.resample import MeshResolution
from dem2terrain.errors import Dem2TerrainError
from dem2terrain.export import (
    REPORT_NAME,
    WRITE_ERRORS,
    write_batch_outputs,
    write_heightmap_geotiff,
    write_metadata,
    write_raw16,
)
from dem2terrain.logging_utils import LogOptions, configure_logging

LOGGER = logging.getLogger("dem2terrain.cli")

FORMAT_CHOICES = ("r16", "tif")


def _add_range_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the manual elevation range and --config options."""
    parser.add_argument(
        "--min",
        type=float,
        dest="min_height",
        help="Manual minimum elevation (disables auto range; requires --max).",
    )
    parser.add_argument(
        "--max",
        type=float,
        dest="max_height",
        help="Manual maximum elevation (disables auto range; requires --min).",
    )
    parser.add_argument("--config", help="Path to a JSON import settings file.")


def _add_info_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the info subcommand."""
    info = subparsers.add_parser("info", help="Show raster header and georeferencing.")
    info.add_argument("source", help="Path to a GeoTIFF elevation raster.")
    info.add_argument(
        "--sample",
        action="store_true",
        help="Decode samples and report elevation statistics.",
    )
    info.add_argument("--json", action="store_true", help="Print the result as JSON.")


def _add_normalize_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the normalize subcommand."""
    normalize = subparsers.add_parser(
        "normalize", help="Write a 16-bit normalized heightmap and metadata sidecar."
    )
    normalize.add_argument("source", help="Path to a GeoTIFF elevation raster.")
    normalize.add_argument("--output", required=True, help="Output heightmap path.")
    normalize.add_argument(
        "--format",
        choices=FORMAT_CHOICES,
        default="r16",
        help="Raw little-endian 16-bit or uint16 GeoTIFF.",
    )
    _add_range_arguments(normalize)


def _add_terrain_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the terrain subcommand."""
    terrain = subparsers.add_parser(
        "terrain", help="Build terrain grids or meshes for a batch of tiles."
    )
    terrain.add_argument("sources", nargs="+", help="GeoTIFF elevation rasters.")
    terrain.add_argument("--output", required=True, help="Output directory.")
    terrain.add_argument(
        "--mode",
        choices=tuple(mode.value for mode in OutputMode),
        default=OutputMode.GRID.value,
        help="Snapped height grid or triangulated mesh.",
    )
    terrain.add_argument(
        "--mesh-resolution",
        choices=tuple(tier.value for tier in MeshResolution),
        help="Mesh density relative to the source raster.",
    )
    terrain.add_argument(
        "--jobs",
        type=int,
        help="Worker threads (0 = CPU count).",
    )
    terrain.add_argument(
        "--no-metadata-size",
        action="store_true",
        help="Use --width/--length instead of pixel size times raster size.",
    )
    terrain.add_argument("--width", type=float, help="Manual terrain width (X).")
    terrain.add_argument("--length", type=float, help="Manual terrain length (Z).")
    terrain.add_argument(
        "--height",
        type=float,
        help="Manual terrain height (Y); disables the elevation-range height.",
    )
    _add_range_arguments(terrain)


def _add_version_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the version subcommand."""
    subparsers.add_parser("version", help="Print the dem2terrain version.")


def _settings_from_args(args: argparse.Namespace) -> ImportSettings:
    """Load settings from --config and apply CLI overrides."""
    config_path = getattr(args, "config", None)
    settings = load_settings(Path(config_path)) if config_path else ImportSettings()
    min_height = getattr(args, "min_height", None)
    max_height = getattr(args, "max_height", None)
    if (min_height is None) != (max_height is None):
        raise ValueError("--min and --max must be given together.")
    if min_height is not None and max_height is not None:
        settings = with_manual_range(settings, min_height, max_height)

    sizing = settings.sizing
    if getattr(args, "no_metadata_size", False):
        sizing = replace(sizing, use_metadata_size=False)
    if getattr(args, "width", None) is not None:
        sizing = replace(sizing, width=args.width)
    if getattr(args, "length", None) is not None:
        sizing = replace(sizing, length=args.length)
    if getattr(args, "height", None) is not None:
        sizing = replace(sizing, height=args.height, use_metadata_height=False)
    settings = replace(settings, sizing=sizing)

    if getattr(args, "mesh_resolution", None):
        settings = replace(settings, mesh_resolution=MeshResolution(args.mesh_resolution))
    if getattr(args, "jobs", None) is not None:
        if args.jobs < 0:
            raise ValueError("--jobs must be >= 0.")
        settings = replace(settings, jobs=args.jobs)
    sources = [str(Path(source)) for source in getattr(args, "sources", None) or []]
    if len(set(sources)) != len(sources):
        raise ValueError("Batch sources must be unique.")
    return settings


def _print_info(info: DemInfo) -> None:
    """Print a human-readable DEM summary."""
    header = info.header
    georef = info.georef
    print(f"Source: {info.source}")
    print(
        f"Size: {header.width}x{header.height} "
        f"({header.bits_per_sample}-bit, tiled={header.is_tiled})"
    )
    print(f"Pixel size: {georef.pixel_size_x} x {georef.pixel_size_y}")
    print(f"Bounds: {georef.min_x}, {georef.min_y}, {georef.max_x}, {georef.max_y}")
    print(f"EPSG: {georef.epsg_code or 'unknown'}")
    print(f"NoData: {georef.nodata_value if georef.has_nodata else 'none'}")
    if info.min_elevation is not None:
        print(f"Elevation: {info.min_elevation} .. {info.max_elevation}")


def _run_info(args: argparse.Namespace) -> int:
    """Inspect one raster and print its summary."""
    info = inspect_dem(Path(args.source), sample=args.sample)
    if args.json:
        print(json.dumps(info.as_dict(), indent=2))
    else:
        _print_info(info)
    return 0


def _run_normalize(args: argparse.Namespace, settings: ImportSettings) -> int:
    """Import one raster and write its heightmap plus metadata sidecar."""
    result = import_heightmap(Path(args.source), settings)
    output_path = Path(args.output)
    try:
        if args.format == "tif":
            write_heightmap_geotiff(result.heightmap, result.georef, output_path)
        else:
            write_raw16(result.heightmap, output_path)
        meta_path = write_metadata(result, output_path.with_suffix(".json"))
    except WRITE_ERRORS as exc:
        LOGGER.error("Write failed: %s", exc, extra={"source": result.source})
        return 1
    LOGGER.info("Heightmap written to %s (metadata %s)", output_path, meta_path.name)
    return 0


def _run_terrain(args: argparse.Namespace, settings: ImportSettings) -> int:
    """Run the batch pipeline and write per-tile outputs with the report."""
    batch = run_batch(
        [Path(source) for source in args.sources],
        settings,
        mode=OutputMode(args.mode),
    )
    output_dir = Path(args.output)
    try:
        report = write_batch_outputs(batch, output_dir)
    except OSError as exc:
        LOGGER.error("Cannot write terrain report: %s", exc)
        return 1
    if report["errors"]:
        LOGGER.error("Terrain build completed with errors.")
        for source, error in report["errors"].items():
            LOGGER.error("Terrain error: %s", error, extra={"source": source})
        return 1
    LOGGER.info("Terrain report written to %s", output_dir / REPORT_NAME)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the dem2terrain CLI."""
    parser = argparse.ArgumentParser(
        prog="dem2terrain",
        description="DEM2TERRAIN GeoTIFF heightmap and terrain builder",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument(
        "--log-file",
        help="Optional path for JSON log output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_info_parser(subparsers)
    _add_normalize_parser(subparsers)
    _add_terrain_parser(subparsers)
    _add_version_parser(subparsers)

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    configure_logging(
        LogOptions(
            verbose=getattr(args, "verbose", 0) or 0,
            quiet=bool(getattr(args, "quiet", False)),
            log_file=Path(log_file_value) if log_file_value else None,
            json_console=bool(getattr(args, "log_json", False)),
        )
    )

    if args.command == "version":
        print(__version__)
        return 0
    if args.command == "info":
        try:
            return _run_info(args)
        except Dem2TerrainError as exc:
            LOGGER.error("%s", exc)
            return 1

    try:
        settings = _settings_from_args(args)
    except (OSError, TypeError, ValueError, jsonschema.ValidationError) as exc:
        LOGGER.error("Invalid settings: %s", exc)
        return 2

    if args.command == "normalize":
        try:
            return _run_normalize(args, settings)
        except Dem2TerrainError as exc:
            LOGGER.error("%s", exc)
            return 1
    if args.command == "terrain":
        return _run_terrain(args, settings)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
