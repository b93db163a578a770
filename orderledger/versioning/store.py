"""VersionStore abstract interface."""

from abc import ABC, abstractmethod

from orderledger.db.errors import ValidationError
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.models import VersionedRecord


def require_draft_status(status: VersionStatus) -> None:
    """Refuse any delete that targets FINAL versions.

    Shared by every store and index implementation.
    """
    if status != VersionStatus.DRAFT:
        raise ValidationError(
            f"Refusing to delete versions with status {status.value}; "
            "only DRAFT versions can be deleted"
        )


class VersionStore(ABC):
    """Abstract interface for the append-only version store.

    Source of truth for every version. Holds exactly one immutable entry
    per (record_id, version_number) and enforces that uniqueness.
    """

    @abstractmethod
    async def append(self, record: VersionedRecord) -> VersionedRecord:
        """Append a new version.

        Raises:
            ConflictError: If (record_id, version_number) already exists.
        """
        pass

    @abstractmethod
    async def get_by_key(
        self, record_id: str, version_number: int
    ) -> VersionedRecord | None:
        """Get one version by its composite key."""
        pass

    @abstractmethod
    async def get_highest_version(self, record_id: str) -> VersionedRecord | None:
        """Get the version with the maximum version number."""
        pass

    @abstractmethod
    async def list_all(self, record_id: str) -> list[VersionedRecord]:
        """List all versions of a record, ascending by version number."""
        pass

    @abstractmethod
    async def list_version_numbers(self, record_id: str) -> list[int]:
        """List the version numbers of a record, ascending, without loading payloads."""
        pass

    @abstractmethod
    async def list_by_status(
        self, record_id: str, status: VersionStatus
    ) -> list[VersionedRecord]:
        """List versions of a record with the given status, ascending."""
        pass

    @abstractmethod
    async def delete_versions(
        self,
        record_id: str,
        version_numbers: list[int],
        status: VersionStatus,
    ) -> int:
        """Delete versions matching record, numbers AND status.

        Returns:
            Number of versions deleted.

        Raises:
            ValidationError: If status is FINAL. Nothing is deleted.
        """
        pass

    @abstractmethod
    async def list_record_ids(self) -> list[str]:
        """List every record id that has at least one version."""
        pass
