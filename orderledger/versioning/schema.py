"""Schema collaborators consumed by the version orchestrator.

The schema registry and the recursive field validator live outside
this package. Only their interfaces are defined here, together with
the minimal implementations used when no external service is wired.
"""

from abc import ABC, abstractmethod
from typing import Any

from orderledger.versioning.errors import FieldViolation, SchemaNotFoundError


class SchemaResolver(ABC):
    """Resolves the schema version id stamped on new versions."""

    @abstractmethod
    async def get_active_schema_id(self) -> str:
        """Get the id of the currently active schema.

        Raises:
            SchemaNotFoundError: If no schema is active.
        """
        pass


class StaticSchemaResolver(SchemaResolver):
    """Returns a fixed, configured schema id."""

    def __init__(self, schema_id: str | None) -> None:
        self._schema_id = schema_id

    async def get_active_schema_id(self) -> str:
        if not self._schema_id:
            raise SchemaNotFoundError()
        return self._schema_id


class FieldValidator(ABC):
    """Validates a payload against a schema before a FINAL write."""

    @abstractmethod
    async def validate(
        self, payload: dict[str, Any], schema_id: str
    ) -> list[FieldViolation]:
        """Validate a payload.

        Returns:
            Violations found; empty when the payload is acceptable.
        """
        pass


class NoopFieldValidator(FieldValidator):
    """Accepts every payload."""

    async def validate(
        self, payload: dict[str, Any], schema_id: str  # noqa: ARG002
    ) -> list[FieldViolation]:
        return []
