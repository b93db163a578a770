"""Shared test fixtures for the orderledger test suite."""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from orderledger.config import get_settings
from orderledger.config.settings import set_toml_config


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Empty config directory that the loader is pointed at.

    ORDERLEDGER_ENV is set to an overlay name no test writes unless it
    asks for one, so only default.toml applies by default.
    """
    path = tmp_path / "config"
    path.mkdir()
    monkeypatch.setenv("ORDERLEDGER_CONFIG_DIR", str(path))
    monkeypatch.setenv("ORDERLEDGER_ENV", "test")
    return path


@pytest.fixture
def write_config(config_dir: Path) -> Callable[..., Path]:
    """Write TOML files into the config directory.

    Usage:
        def test_something(write_config):
            write_config(default='[purge]\\nlock_name = "nightly"', test="...")
    """

    def _write(**files: str) -> Path:
        for environment, content in files.items():
            (config_dir / f"{environment}.toml").write_text(content)
        return config_dir

    return _write


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    """Drop cached Settings and loaded TOML around every test."""
    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})
