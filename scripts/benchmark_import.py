"""Benchmark GeoTIFF import and terrain build throughput."""

from __future__ import annotations

import argparse
import csv
import shutil
import tracemalloc
from pathlib import Path
from time import perf_counter

from dem2terrain.config import ImportSettings, load_settings
from dem2terrain.dem.pipeline import OutputMode, run_batch
from dem2terrain.export import write_batch_outputs


def _resolve_output_dir(path_value: str) -> Path:
    """Resolve the benchmark output directory."""
    output_dir = Path(path_value)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def main() -> int:
    """CLI entrypoint for import benchmarks."""
    parser = argparse.ArgumentParser(
        description="Benchmark DEM import and terrain build performance."
    )
    parser.add_argument("--dem", action="append", help="DEM input path.")
    parser.add_argument(
        "--mode",
        choices=tuple(mode.value for mode in OutputMode),
        default=OutputMode.GRID.value,
        help="Terrain output kind.",
    )
    parser.add_argument("--runs", type=int, default=5, help="Number of runs.")
    parser.add_argument("--jobs", type=int, default=None, help="Worker threads.")
    parser.add_argument("--config", help="Optional import settings JSON.")
    parser.add_argument(
        "--output-dir",
        default="benchmarks/import",
        help="Base output directory.",
    )
    parser.add_argument(
        "--csv-path",
        help="Optional CSV output path override.",
    )
    parser.add_argument(
        "--write-outputs",
        action="store_true",
        help="Also time writing heightmaps and terrain files.",
    )
    args = parser.parse_args()

    if not args.dem:
        parser.error("--dem is required")
    if args.runs < 1:
        parser.error("--runs must be at least 1")

    output_dir = _resolve_output_dir(args.output_dir)
    csv_path = Path(args.csv_path) if args.csv_path else output_dir / "import.csv"
    settings = load_settings(Path(args.config)) if args.config else ImportSettings()
    sources = [Path(path) for path in args.dem]

    rows: list[dict[str, object]] = []
    for run in range(1, args.runs + 1):
        run_dir = output_dir / f"run_{run:02d}"
        if run_dir.exists():
            shutil.rmtree(run_dir)
        run_dir.mkdir(parents=True, exist_ok=True)

        tracemalloc.start()
        start = perf_counter()
        batch = run_batch(sources, settings, mode=OutputMode(args.mode), jobs=args.jobs)
        if args.write_outputs:
            write_batch_outputs(batch, run_dir)
        elapsed = perf_counter() - start
        _, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()

        for tile in batch.tiles:
            rows.append(
                {
                    "run": run,
                    "source": tile.source,
                    "pixels": tile.result.header.width * tile.result.header.height,
                    "seconds": round(elapsed, 6),
                    "peak_mb": round(peak / (1024 * 1024), 3),
                    "error": "",
                }
            )
        for source, error in batch.errors.items():
            rows.append(
                {
                    "run": run,
                    "source": source,
                    "pixels": 0,
                    "seconds": round(elapsed, 6),
                    "peak_mb": round(peak / (1024 * 1024), 3),
                    "error": error,
                }
            )

    csv_path.parent.mkdir(parents=True, exist_ok=True)
    with csv_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(
            handle,
            fieldnames=["run", "source", "pixels", "seconds", "peak_mb", "error"],
        )
        writer.writeheader()
        writer.writerows(rows)

    print(f"Wrote {len(rows)} rows to {csv_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
