"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "postgres"]


class PostgresConfig(BaseModel):
    """PostgreSQL connection pool configuration.

    Leave connection_url unset in committed files; the pool then reads
    ORDERLEDGER_DATABASE_URL or DATABASE_URL.
    """

    connection_url: str | None = Field(
        default=None,
        description="Connection URL; ORDERLEDGER_STORAGE__POSTGRES__CONNECTION_URL",
    )
    min_pool_size: int = Field(
        default=5,
        gt=0,
        description="Minimum connections to keep open",
    )
    max_pool_size: int = Field(
        default=20,
        gt=0,
        description="Maximum connections in pool",
    )
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Close connections idle longer than this (seconds)",
    )
    command_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Default timeout for queries (seconds)",
    )


class StorageConfig(BaseModel):
    """Backend selection for the version store, index and purge audit log.

    The three stores always share one backend so the postgres variant can
    keep them in the same database.
    """

    backend: BackendType = Field(
        default="inmemory",
        description="Backend for version store, version index and purge audit log",
    )
    postgres: PostgresConfig = Field(
        default_factory=PostgresConfig,
        description="PostgreSQL settings (used when backend = postgres)",
    )
