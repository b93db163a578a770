"""Hatchet client wrapper.

Provides a centralized client for Hatchet job orchestration
with graceful degradation when Hatchet is unavailable.
"""

from typing import Any

from orderledger.config.models.jobs import HatchetConfig
from orderledger.observability.logging import get_logger

logger = get_logger(__name__)


class HatchetClient:
    """Wrapper for the Hatchet SDK client.

    The SDK client is created on first use. When Hatchet is disabled or
    cannot be initialized, get_client() returns None and scheduled jobs
    simply do not run; the purge engine and reconciler can still be
    invoked directly.
    """

    def __init__(self, config: HatchetConfig) -> None:
        """Initialize Hatchet client wrapper.

        Args:
            config: Hatchet configuration
        """
        self._config = config
        self._client: Any | None = None
        self._available: bool | None = None

    def _get_or_create_client(self) -> Any | None:
        if self._client is not None:
            return self._client

        if not self._config.enabled:
            logger.info("hatchet_disabled", reason="config")
            return None

        try:
            from hatchet_sdk import Hatchet

            api_key = (
                self._config.api_key.get_secret_value()
                if self._config.api_key
                else None
            )
            self._client = Hatchet(
                server_url=self._config.server_url,
                api_key=api_key,
            )
            logger.info("hatchet_client_initialized", server_url=self._config.server_url)
            return self._client
        except ImportError:
            logger.warning("hatchet_sdk_not_installed")
            return None
        except Exception as e:
            logger.error("hatchet_client_init_failed", error=str(e))
            return None

    def get_client(self) -> Any | None:
        """Get Hatchet client instance.

        Returns:
            Hatchet client or None if unavailable
        """
        return self._get_or_create_client()

    async def health_check(self) -> bool:
        """Report whether a Hatchet client could be created."""
        self._available = self._get_or_create_client() is not None
        if not self._available:
            logger.warning("hatchet_unavailable", server_url=self._config.server_url)
        return self._available

    @property
    def is_available(self) -> bool:
        """Whether Hatchet was available on the last health check."""
        return bool(self._available)

    @property
    def config(self) -> HatchetConfig:
        return self._config
