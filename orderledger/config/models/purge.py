"""Purge engine configuration."""

from typing import Literal

from pydantic import BaseModel, Field

LockBackend = Literal["local", "redis"]


class PurgeConfig(BaseModel):
    """Draft purge job settings.

    The run lock serializes purge executions. Use the redis backend
    whenever more than one worker process can trigger a purge.
    """

    lock_backend: LockBackend = Field(
        default="local",
        description="Run lock implementation",
    )
    lock_name: str = Field(
        default="draft-purge",
        description="Name of the run-level lock",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL for the distributed run lock",
    )
    lock_timeout_seconds: int = Field(
        default=3600,
        gt=0,
        description="Lock auto-release after this many seconds",
    )
    lock_blocking_timeout_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="How long to wait for a held lock before skipping the run",
    )
