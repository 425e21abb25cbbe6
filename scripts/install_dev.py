"""Create a local .venv and install dem2terrain with its dev extra."""

from __future__ import annotations

import os
import subprocess
import sys
import venv
from pathlib import Path

MIN_PYTHON = (3, 10)


def _venv_python(venv_dir: Path) -> Path:
    """Return the platform-specific venv python path."""
    if os.name == "nt":
        return venv_dir / "Scripts" / "python.exe"
    return venv_dir / "bin" / "python"


def _pip_commands(python: Path, repo_root: Path) -> list[list[str]]:
    """Return the pip invocations needed for an editable dev install."""
    pip = [str(python), "-m", "pip", "install", "--upgrade"]
    return [
        [*pip, "pip"],
        [*pip, "setuptools", "wheel"],
        [str(python), "-m", "pip", "install", "-e", f"{repo_root}[dev]"],
    ]


def main() -> int:
    """Create the virtualenv (if missing) and install dependencies."""
    if sys.version_info < MIN_PYTHON:
        print("Python 3.10+ is required.")
        return 1

    repo_root = Path(__file__).resolve().parents[1]
    venv_dir = repo_root / ".venv"
    if not venv_dir.exists():
        venv.EnvBuilder(with_pip=True).create(venv_dir)

    python = _venv_python(venv_dir)
    if not python.exists():
        print(f"Virtualenv python not found at {python}")
        return 1

    for command in _pip_commands(python, repo_root):
        subprocess.check_call(command)

    print("Installed dem2terrain and dev dependencies into .venv.")
    print("Run the test suite with: .venv/bin/python -m pytest")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
