"""Unit tests for HatchetClient."""

import sys
from types import ModuleType
from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from orderledger.config.models.jobs import HatchetConfig
from orderledger.jobs.client import HatchetClient


@pytest.fixture
def fake_hatchet_sdk(monkeypatch) -> MagicMock:
    """Install a stand-in hatchet_sdk module exposing a Hatchet class."""
    hatchet_cls = MagicMock(name="Hatchet")
    module = ModuleType("hatchet_sdk")
    module.Hatchet = hatchet_cls
    monkeypatch.setitem(sys.modules, "hatchet_sdk", module)
    return hatchet_cls


class TestHatchetClient:
    """Tests for HatchetClient."""

    def test_disabled_returns_none(self) -> None:
        """Disabled config never creates an SDK client."""
        client = HatchetClient(HatchetConfig(enabled=False))

        assert client.get_client() is None

    @pytest.mark.asyncio
    async def test_disabled_health_check(self) -> None:
        """Health check reports unavailable when disabled."""
        client = HatchetClient(HatchetConfig(enabled=False))

        assert await client.health_check() is False
        assert client.is_available is False

    def test_creates_client_once(self, fake_hatchet_sdk) -> None:
        """The SDK client is created lazily and cached."""
        config = HatchetConfig(server_url="http://hatchet:7077", api_key=SecretStr("token"))
        client = HatchetClient(config)

        first = client.get_client()
        second = client.get_client()

        assert first is second
        fake_hatchet_sdk.assert_called_once_with(server_url="http://hatchet:7077", api_key="token")

    @pytest.mark.asyncio
    async def test_health_check_available(self, fake_hatchet_sdk) -> None:
        """Health check reports available once a client exists."""
        client = HatchetClient(HatchetConfig())

        assert await client.health_check() is True
        assert client.is_available is True

    def test_init_failure_returns_none(self, fake_hatchet_sdk) -> None:
        """SDK construction errors degrade to no client."""
        fake_hatchet_sdk.side_effect = RuntimeError("bad token")
        client = HatchetClient(HatchetConfig())

        assert client.get_client() is None

    def test_config_property(self) -> None:
        config = HatchetConfig(enabled=False)
        assert HatchetClient(config).config is config
