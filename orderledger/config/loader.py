"""Layered TOML configuration.

config/default.toml is required. config/{ORDERLEDGER_ENV}.toml is merged
over it when present. Environment variables are applied afterwards by
Settings, so nothing here reads ORDERLEDGER_<SECTION>__<KEY>.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_VAR = "ORDERLEDGER_CONFIG_DIR"
ENVIRONMENT_VAR = "ORDERLEDGER_ENV"
DEFAULT_ENVIRONMENT = "development"


def find_config_dir(start: Path | None = None) -> Path:
    """Locate the directory holding default.toml.

    ORDERLEDGER_CONFIG_DIR wins when set. Otherwise the nearest `config/`
    containing a default.toml is used, walking up from `start` (the
    working directory by default), so the worker and the tests find the
    same files from any subdirectory of a checkout.

    Raises:
        FileNotFoundError: If no such directory exists
    """
    override = os.environ.get(CONFIG_DIR_VAR)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_VAR} is not a directory: {path}")
        return path

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / "config"
        if (candidate / "default.toml").is_file():
            return candidate

    raise FileNotFoundError(
        f"No config/default.toml found in {origin} or its parents; set {CONFIG_DIR_VAR}"
    )


def current_environment() -> str:
    """Name of the environment overlay, 'development' when unset."""
    return os.environ.get(ENVIRONMENT_VAR) or DEFAULT_ENVIRONMENT


def load_toml(path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    with path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge `overlay` into a copy of `base`, table by table.

    Tables merge recursively; any other value in the overlay replaces
    the base value outright, lists included.
    """
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_dir: Path | None = None,
    environment: str | None = None,
) -> dict[str, Any]:
    """Load default.toml and the environment overlay.

    Args:
        config_dir: Directory to read; discovered when omitted
        environment: Overlay name; ORDERLEDGER_ENV when omitted

    Returns:
        Merged configuration dictionary
    """
    config_dir = config_dir or find_config_dir()
    environment = environment or current_environment()

    default_path = config_dir / "default.toml"
    if not default_path.is_file():
        raise FileNotFoundError(f"Missing base configuration: {default_path}")
    config = load_toml(default_path)

    overlay_path = config_dir / f"{environment}.toml"
    if overlay_path.is_file():
        config = deep_merge(config, load_toml(overlay_path))
    return config
