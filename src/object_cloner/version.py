"""Runtime lookup of the installed ``object-cloner`` version."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path

import tomllib

DISTRIBUTION_NAME = "object-cloner"
_PYPROJECT_PATH = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _read_pyproject_version(path: Path) -> str:
    with path.open("rb") as handle:
        project = tomllib.load(handle)["project"]
    return str(project["version"])


def get_version(path: Path = _PYPROJECT_PATH) -> str:
    """Return the distribution version, falling back to a source checkout."""
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        try:
            return _read_pyproject_version(path)
        except (FileNotFoundError, KeyError, tomllib.TOMLDecodeError):
            return "unknown"


__version__ = get_version()
