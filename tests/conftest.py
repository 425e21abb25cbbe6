from __future__ import annotations

import os
import sys
from pathlib import Path


def _venv_python(root: Path) -> Path | None:
    if os.name == "nt":
        candidate = root / ".venv" / "Scripts" / "python.exe"
    else:
        candidate = root / ".venv" / "bin" / "python"
    return candidate if candidate.exists() else None


def _reexec_in_venv() -> None:
    if os.environ.get("DEM2TERRAIN_SKIP_VENV_REEXEC") == "1":
        return
    root = Path(__file__).resolve().parents[1]
    venv_python = _venv_python(root)
    if not venv_python:
        return
    if Path(sys.executable).resolve() == venv_python.resolve():
        return
    os.environ["DEM2TERRAIN_SKIP_VENV_REEXEC"] = "1"
    os.execv(
        str(venv_python),
        [str(venv_python), "-m", "pytest", *sys.argv[1:]],
    )


_reexec_in_venv()

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
for entry in (SRC_ROOT, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

import logging  # noqa: E402

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_root_logging():
    """Keep handlers installed by CLI tests from leaking between tests."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
