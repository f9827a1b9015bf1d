"""Layered TOML configuration.

Layers, later ones winning key by key:

1. ``<config dir>/default.toml``
2. ``<config dir>/<PROFILEFIELDS_ENV>.toml``
3. the file named by ``PROFILEFIELDS_CONFIG_FILE`` (e.g. a mounted secret)

Every layer is optional; model defaults cover anything left unset.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "PROFILEFIELDS_CONFIG_DIR"
CONFIG_FILE_ENV = "PROFILEFIELDS_CONFIG_FILE"
ENVIRONMENT_ENV = "PROFILEFIELDS_ENV"

# How far up from the working directory to look for config/
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Directory holding default.toml and the per-environment files.

    Raises:
        FileNotFoundError: If PROFILEFIELDS_CONFIG_DIR names a missing directory
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {explicit}")
        return path

    start = Path.cwd()
    for candidate in [start, *start.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; tables merge, scalars replace."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def config_files() -> list[Path]:
    """Layer files in merge order, skipping the ones that are absent.

    Raises:
        FileNotFoundError: If PROFILEFIELDS_CONFIG_FILE names a missing file
    """
    config_dir = get_config_dir()
    layers = [config_dir / "default.toml", config_dir / f"{get_environment()}.toml"]
    files = [path for path in layers if path.is_file()]

    overlay = os.environ.get(CONFIG_FILE_ENV)
    if overlay:
        path = Path(overlay)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {overlay}")
        files.append(path)
    return files


def load_config() -> dict[str, Any]:
    """Merged content of every configuration layer."""
    config: dict[str, Any] = {}
    for path in config_files():
        config = deep_merge(config, load_toml(path))
    return config
