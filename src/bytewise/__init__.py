"""ByteWise: timed bit, hex and byte-encoding challenges."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]


def _source_checkout_version() -> str | None:
    """Read `[project].version` when running from a source tree."""
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if not pyproject.is_file():
        return None
    try:
        project = tomllib.loads(pyproject.read_text(encoding="utf-8")).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return None
    if project.get("name") != "bytewise":
        return None
    found = project.get("version")
    return str(found) if found else None


def _resolve_version() -> str:
    checkout = _source_checkout_version()
    if checkout is not None:
        return checkout
    try:
        return version("bytewise")
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
