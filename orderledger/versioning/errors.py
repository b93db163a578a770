"""Versioning domain errors.

Each maps onto the store error hierarchy so callers that only know
about StoreError subclasses still branch correctly.
"""

from pydantic import BaseModel, ConfigDict, Field

from orderledger.db.errors import ConflictError, NotFoundError, ValidationError


class FieldViolation(BaseModel):
    """A single field-level validation failure."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="Dotted path of the offending field")
    message: str = Field(..., description="Human-readable reason")


class RecordNotFoundError(NotFoundError):
    """No version exists for the record, or the requested version is absent."""

    def __init__(self, record_id: str, version_number: int | None = None) -> None:
        if version_number is None:
            message = f"Record not found: {record_id}"
        else:
            message = f"Record not found: {record_id}, version: {version_number}"
        super().__init__(message)
        self.record_id = record_id
        self.version_number = version_number


class SchemaNotFoundError(NotFoundError):
    """No schema is active when a version is created."""

    def __init__(self, message: str = "No active schema found") -> None:
        super().__init__(message)


class ValidationFailureError(ValidationError):
    """Input rejected before anything was written."""

    def __init__(
        self,
        message: str,
        violations: list[FieldViolation] | None = None,
    ) -> None:
        super().__init__(message)
        self.violations = violations or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailureError":
        """Build an error for a single offending field."""
        return cls(
            f"Validation failed for field '{field}': {message}",
            [FieldViolation(field=field, message=message)],
        )


class VersionConflictError(ConflictError):
    """Version number race that outlived the orchestrator's retries.

    Callers should re-read the highest version and retry; this is never
    a permanent failure.
    """

    def __init__(
        self,
        record_id: str,
        attempted_version: int,
        attempts: int,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Version conflict for record {record_id}: version {attempted_version} "
            f"was taken by a concurrent writer after {attempts} attempt(s)",
            cause=cause,
        )
        self.record_id = record_id
        self.attempted_version = attempted_version
        self.attempts = attempts
