"""Configuration loading for orderledger.

Configuration is loaded from TOML files with environment variable overrides.

Usage:
    from orderledger.config import get_settings

    settings = get_settings()
    retries = settings.versioning.max_conflict_retries
"""

from functools import lru_cache

from orderledger.config.loader import load_config
from orderledger.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the singleton settings instance.

    The result is cached for the lifetime of the process.
    Call `get_settings.cache_clear()` to reload configuration.

    Returns:
        Settings instance with all configuration loaded and validated
    """
    set_toml_config(load_config())
    return Settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration.

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()


__all__ = ["get_settings", "reload_settings", "Settings"]
