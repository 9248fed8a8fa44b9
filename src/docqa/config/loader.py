"""
Project-root and config-file discovery.

Lookup order for file-based configuration::

    <root>/docqa.toml  →  <root>/pyproject.toml [tool.docqa]

Only the first file found is used.  Environment variables (``DOCQA_*``)
and explicit overrides always win over file values; see
:mod:`docqa.config.settings`.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from docqa.errors import ConfigError

CONFIG_FILENAME = "docqa.toml"


def find_project_root(start: Path | None = None) -> Path:
    """Walk upward from *start* to find the project root.

    Recognised root markers (checked in order):

    * ``docqa.toml``
    * ``pyproject.toml``
    * ``.git`` directory

    Falls back to *start* (or cwd) when no marker is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        if (directory / CONFIG_FILENAME).exists():
            return directory
        if (directory / "pyproject.toml").exists():
            return directory
        if (directory / ".git").exists():
            return directory
    return current


def find_config_file(project_root: Path) -> Path | None:
    """Return the config file that applies to *project_root*, if any."""
    candidate = project_root / CONFIG_FILENAME
    if candidate.is_file():
        return candidate
    pyproject = project_root / "pyproject.toml"
    if pyproject.is_file() and load_toml_config(pyproject):
        return pyproject
    return None


def load_toml_config(path: Path) -> dict[str, Any]:
    """Read docqa settings from a TOML file.

    ``pyproject.toml`` contributes its ``[tool.docqa]`` table; any other
    file is read whole.  Hyphenated keys are normalized to underscores so
    ``max-heading-skip`` and ``max_heading_skip`` are equivalent.

    Raises:
        ConfigError: the file cannot be read or is not valid TOML.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}", cause=e).with_context(path=str(path))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}", cause=e).with_context(path=str(path))

    if path.name == "pyproject.toml":
        data = data.get("tool", {}).get("docqa", {})

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a table in {path}").with_context(path=str(path))

    return {key.replace("-", "_"): value for key, value in data.items()}
