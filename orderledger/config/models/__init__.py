"""Configuration models, one module per settings section."""

from orderledger.config.models.jobs import HatchetConfig, JobsConfig
from orderledger.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from orderledger.config.models.purge import PurgeConfig
from orderledger.config.models.storage import PostgresConfig, StorageConfig
from orderledger.config.models.versioning import VersioningConfig

__all__ = [
    "HatchetConfig",
    "JobsConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "PostgresConfig",
    "PurgeConfig",
    "StorageConfig",
    "VersioningConfig",
]
