"""docqa configuration: settings model, caching factory, config-file discovery."""

from docqa.config.loader import find_config_file, find_project_root, load_toml_config
from docqa.config.settings import (
    DEFAULT_NOISE_PATTERNS,
    DocQASettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "DEFAULT_NOISE_PATTERNS",
    "DocQASettings",
    "clear_settings_cache",
    "find_config_file",
    "find_project_root",
    "get_settings",
    "load_toml_config",
]
