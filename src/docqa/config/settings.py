"""
Centralized settings for docqa.

:class:`DocQASettings` resolves every knob the linter, corpus loader and
example runner need from a single place.  Resolution order (later wins)::

    defaults  →  docqa.toml / [tool.docqa]  →  .env  →  DOCQA_* env vars  →  overrides

Tags:
    docqa, configuration, settings, pydantic, caching
"""

from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, PrivateAttr, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from docqa.config.loader import find_config_file, find_project_root, load_toml_config
from docqa.errors import ConfigError

# Config file consulted by TomlConfigSource while a settings object is built.
_active_config_file: ContextVar[Path | None] = ContextVar("docqa_config_file", default=None)


DEFAULT_NOISE_PATTERNS = [
    r"Up-to-date",
    r"up to date",
    r"Starting Performing",
    r"Linking ",
    r"Finished ",
    r"--force",
    r"Building .*configuration",
    r"Running .*docqa-examples",
]


class TomlConfigSource(PydanticBaseSettingsSource):
    """Settings source backed by ``docqa.toml`` or ``[tool.docqa]``."""

    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        path = _active_config_file.get()
        self._data: dict[str, Any] = load_toml_config(path) if path else {}

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in self._data.items()
            if name in self.settings_cls.model_fields
        }


class DocQASettings(BaseSettings):
    """docqa configuration.

    All fields can be set via ``DOCQA_*`` environment variables (e.g.
    ``DOCQA_EXAMPLE_TIMEOUT=60``); list and dict fields take JSON.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCQA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Corpus ───────────────────────────────────────────────────
    root: Path | None = Field(default=None, description="Corpus root for '/absolute' links and display paths")
    extensions: list[str] = Field(default=[".md", ".markdown"])
    exclude_dirs: list[str] = Field(default=[".git", "node_modules", ".venv", "venv", "_build", "site"])
    exclude: list[str] = Field(default_factory=list, description="fnmatch patterns on root-relative paths")
    orphan_exempt: list[str] = Field(default=["README.md", "index.md", "SUMMARY.md"])

    # ── Linting ──────────────────────────────────────────────────
    select: list[str] = Field(default_factory=list, description="Only report these code prefixes")
    ignore: list[str] = Field(default_factory=list, description="Never report these code prefixes")
    include_infos: bool = Field(default=True)
    max_heading_skip: int = Field(default=1, ge=1, le=5)

    # ── Examples ─────────────────────────────────────────────────
    example_timeout: float = Field(default=30.0, gt=0)
    example_jobs: int = Field(default=1, ge=1)
    example_max_lines: int = Field(default=8, ge=2)
    example_commands: dict[str, list[str]] = Field(
        default={"dub": ["dub", "run", "--single", "{file}"]},
        description="Interpreter name → argv template ({file} is the example path)",
    )
    example_noise_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_NOISE_PATTERNS))

    # ── Output ───────────────────────────────────────────────────
    hyperlinks: Literal["auto", "on", "off"] = Field(default="auto")
    editor: str = Field(default="", description="Editor alias for source links; empty = $VISUAL/$EDITOR")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: Literal["auto", "console", "json"] = Field(default="auto")

    _project_root: Path | None = PrivateAttr(default=None)
    _config_file: Path | None = PrivateAttr(default=None)

    @field_validator("extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in (e.lower() for e in value)]

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSource(settings_cls),
            file_secret_settings,
        )


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, DocQASettings] = {}


def get_settings(
    *,
    project_root: Path | None = None,
    overrides: dict[str, Any] | None = None,
    _force_reload: bool = False,
) -> DocQASettings:
    """Load, validate, and cache a :class:`DocQASettings` instance.

    Parameters
    ----------
    project_root:
        Override the auto-detected project root.
    overrides:
        Explicit values (e.g. from CLI flags); ``None`` values are dropped.
        Settings built with overrides are not cached.
    _force_reload:
        Bypass cache and reload from disk.

    Raises
    ------
    ConfigError
        The config file or environment holds invalid values.
    """
    root = (project_root or find_project_root()).resolve()
    clean_overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    cache_key = str(root)

    if not clean_overrides and not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    config_file = find_config_file(root)
    token = _active_config_file.set(config_file)
    try:
        settings = DocQASettings(
            _env_file=root / ".env",  # type: ignore[call-arg]
            **clean_overrides,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", cause=e).with_context(
            path=str(config_file) if config_file else None,
        )
    finally:
        _active_config_file.reset(token)

    if settings.root is not None and not settings.root.is_absolute():
        settings.root = (root / settings.root).resolve()

    settings._project_root = root
    settings._config_file = config_file

    if not clean_overrides:
        _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
