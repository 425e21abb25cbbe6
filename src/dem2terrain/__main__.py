"""Module entrypoint for `python -m dem2terrain`."""

from __future__ import annotations

from dem2terrain.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
