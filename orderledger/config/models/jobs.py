"""Job configuration models.

Configuration for background job infrastructure.
"""

from pydantic import BaseModel, Field, SecretStr


class HatchetConfig(BaseModel):
    """Hatchet background job orchestration configuration.

    Hatchet runs the draft purge and the index reconciliation on a schedule.
    """

    enabled: bool = Field(default=True, description="Enable Hatchet integration")
    server_url: str = Field(
        default="http://localhost:7077",
        description="Hatchet engine server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Hatchet API key (from HATCHET_API_KEY env var)",
    )
    worker_concurrency: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Number of concurrent job workers",
    )
    cron_purge_drafts: str = Field(
        default="0 0 * * *",
        description="Cron schedule for the draft purge (daily at midnight UTC)",
    )
    cron_reconcile_index: str = Field(
        default="30 1 * * *",
        description="Cron schedule for version index reconciliation",
    )
    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum retry attempts for failed jobs",
    )
    retry_backoff_seconds: int = Field(
        default=120,
        ge=10,
        description="Initial backoff in seconds between retries",
    )


class JobsConfig(BaseModel):
    """Top-level jobs configuration."""

    hatchet: HatchetConfig = Field(
        default_factory=HatchetConfig,
        description="Hatchet configuration",
    )
