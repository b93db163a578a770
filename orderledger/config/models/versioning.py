"""Version orchestration configuration."""

from pydantic import BaseModel, Field, model_validator


class VersioningConfig(BaseModel):
    """Settings for version creation, record ids and conflict retries."""

    active_schema_id: str | None = Field(
        default=None,
        description="Schema version id stamped on new versions (None = no active schema)",
    )
    record_id_pattern: str = Field(
        default=r"^ORD-[0-9]{5}$",
        description="Full-match pattern a record id must satisfy for final saves",
    )
    record_id_prefix: str = Field(
        default="ORD",
        description="Prefix for generated draft record ids",
    )
    record_id_digits: int = Field(
        default=5,
        ge=1,
        le=12,
        description="Zero-padded numeric width of generated record ids",
    )
    record_id_generation_attempts: int = Field(
        default=20,
        ge=1,
        description="Random candidates tried before falling back to a clock-derived id",
    )
    max_conflict_retries: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Retries after a version number race before giving up",
    )
    conflict_backoff_base_seconds: float = Field(
        default=0.01,
        ge=0.0,
        description="Initial backoff between conflict retries",
    )
    conflict_backoff_max_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Upper bound for a single conflict backoff",
    )

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "VersioningConfig":
        if self.conflict_backoff_max_seconds < self.conflict_backoff_base_seconds:
            raise ValueError(
                "conflict_backoff_max_seconds must be >= conflict_backoff_base_seconds"
            )
        return self
