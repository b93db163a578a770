"""VersionIndex abstract interface."""

from abc import ABC, abstractmethod

from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.models import DraftVersionsGroup, IndexEntry, RecordSummary


class VersionIndex(ABC):
    """Abstract interface for the payload-free version index.

    Mirrors version store metadata for history listings, latest-version
    lookups and the purge engine's candidate query. Keyed exactly like
    the store.
    """

    @abstractmethod
    async def add(self, entry: IndexEntry) -> IndexEntry:
        """Add the entry mirroring a freshly appended version.

        Raises:
            ConflictError: If the key is already indexed.
        """
        pass

    @abstractmethod
    async def get_by_key(
        self, record_id: str, version_number: int
    ) -> IndexEntry | None:
        """Get one entry by its composite key."""
        pass

    @abstractmethod
    async def get_highest_version(self, record_id: str) -> IndexEntry | None:
        """Get the entry with the maximum version number."""
        pass

    @abstractmethod
    async def list_all(self, record_id: str) -> list[IndexEntry]:
        """List all entries of a record, ascending by version number."""
        pass

    @abstractmethod
    async def list_by_status(
        self, record_id: str, status: VersionStatus
    ) -> list[IndexEntry]:
        """List entries of a record with the given status, ascending."""
        pass

    @abstractmethod
    async def count_by_status(self, record_id: str, status: VersionStatus) -> int:
        """Count entries of a record with the given status."""
        pass

    @abstractmethod
    async def find_records_with_drafts(self) -> list[DraftVersionsGroup]:
        """Group DRAFT version numbers by record id.

        Only records with at least one DRAFT entry are returned.
        """
        pass

    @abstractmethod
    async def delete_versions(
        self,
        record_id: str,
        version_numbers: list[int],
        status: VersionStatus,
    ) -> int:
        """Delete entries matching record, numbers AND status.

        Raises:
            ValidationError: If status is FINAL. Nothing is deleted.
        """
        pass

    @abstractmethod
    async def list_latest_summaries(self) -> list[RecordSummary]:
        """Summarize every record, newest latest-version first."""
        pass

    @abstractmethod
    async def list_record_ids(self) -> list[str]:
        """List every record id that has at least one entry."""
        pass
