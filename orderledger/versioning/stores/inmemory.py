"""In-memory implementations of VersionStore and VersionIndex."""

from collections import defaultdict

from orderledger.db.errors import ConflictError
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.models import (
    DraftVersionsGroup,
    IndexEntry,
    RecordSummary,
    VersionedRecord,
)
from orderledger.versioning.store import VersionStore, require_draft_status


class InMemoryVersionStore(VersionStore):
    """In-memory implementation of VersionStore for testing and development.

    Records are deep-copied on the way in and out so callers can never
    mutate a stored payload.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._versions: dict[str, dict[int, VersionedRecord]] = defaultdict(dict)

    async def append(self, record: VersionedRecord) -> VersionedRecord:
        """Append a new version."""
        versions = self._versions[record.record_id]
        if record.version_number in versions:
            raise ConflictError(
                f"Duplicate version {record.version_number} for record {record.record_id}"
            )
        versions[record.version_number] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def get_by_key(
        self, record_id: str, version_number: int
    ) -> VersionedRecord | None:
        """Get one version by its composite key."""
        record = self._versions.get(record_id, {}).get(version_number)
        return record.model_copy(deep=True) if record else None

    async def get_highest_version(self, record_id: str) -> VersionedRecord | None:
        """Get the version with the maximum version number."""
        versions = self._versions.get(record_id)
        if not versions:
            return None
        return versions[max(versions)].model_copy(deep=True)

    async def list_all(self, record_id: str) -> list[VersionedRecord]:
        """List all versions of a record, ascending by version number."""
        versions = self._versions.get(record_id, {})
        return [versions[n].model_copy(deep=True) for n in sorted(versions)]

    async def list_version_numbers(self, record_id: str) -> list[int]:
        return sorted(self._versions.get(record_id, {}))

    async def list_by_status(
        self, record_id: str, status: VersionStatus
    ) -> list[VersionedRecord]:
        """List versions of a record with the given status, ascending."""
        return [r for r in await self.list_all(record_id) if r.status == status]

    async def delete_versions(
        self,
        record_id: str,
        version_numbers: list[int],
        status: VersionStatus,
    ) -> int:
        """Delete versions matching record, numbers AND status."""
        require_draft_status(status)
        versions = self._versions.get(record_id)
        if not versions:
            return 0

        deleted = 0
        for number in set(version_numbers):
            record = versions.get(number)
            if record is not None and record.status == status:
                del versions[number]
                deleted += 1

        if not versions:
            del self._versions[record_id]
        return deleted

    async def list_record_ids(self) -> list[str]:
        """List every record id that has at least one version."""
        return sorted(rid for rid, versions in self._versions.items() if versions)


class InMemoryVersionIndex(VersionIndex):
    """In-memory implementation of VersionIndex for testing and development.

    Uses a dict per record with linear scans for grouped queries.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._entries: dict[str, dict[int, IndexEntry]] = defaultdict(dict)

    async def add(self, entry: IndexEntry) -> IndexEntry:
        """Add the entry mirroring a freshly appended version."""
        entries = self._entries[entry.record_id]
        if entry.version_number in entries:
            raise ConflictError(
                f"Duplicate index entry {entry.version_number} for record {entry.record_id}"
            )
        entries[entry.version_number] = entry
        return entry

    async def get_by_key(
        self, record_id: str, version_number: int
    ) -> IndexEntry | None:
        """Get one entry by its composite key."""
        return self._entries.get(record_id, {}).get(version_number)

    async def get_highest_version(self, record_id: str) -> IndexEntry | None:
        """Get the entry with the maximum version number."""
        entries = self._entries.get(record_id)
        if not entries:
            return None
        return entries[max(entries)]

    async def list_all(self, record_id: str) -> list[IndexEntry]:
        """List all entries of a record, ascending by version number."""
        entries = self._entries.get(record_id, {})
        return [entries[n] for n in sorted(entries)]

    async def list_by_status(
        self, record_id: str, status: VersionStatus
    ) -> list[IndexEntry]:
        """List entries of a record with the given status, ascending."""
        return [e for e in await self.list_all(record_id) if e.status == status]

    async def count_by_status(self, record_id: str, status: VersionStatus) -> int:
        """Count entries of a record with the given status."""
        return len(await self.list_by_status(record_id, status))

    async def find_records_with_drafts(self) -> list[DraftVersionsGroup]:
        """Group DRAFT version numbers by record id."""
        groups = []
        for record_id in sorted(self._entries):
            drafts = [
                number
                for number, entry in sorted(self._entries[record_id].items())
                if entry.status == VersionStatus.DRAFT
            ]
            if drafts:
                groups.append(DraftVersionsGroup(record_id=record_id, draft_versions=drafts))
        return groups

    async def delete_versions(
        self,
        record_id: str,
        version_numbers: list[int],
        status: VersionStatus,
    ) -> int:
        """Delete entries matching record, numbers AND status."""
        require_draft_status(status)
        entries = self._entries.get(record_id)
        if not entries:
            return 0

        deleted = 0
        for number in set(version_numbers):
            entry = entries.get(number)
            if entry is not None and entry.status == status:
                del entries[number]
                deleted += 1

        if not entries:
            del self._entries[record_id]
        return deleted

    async def list_latest_summaries(self) -> list[RecordSummary]:
        """Summarize every record, newest latest-version first."""
        summaries = [
            RecordSummary.from_entries(list(entries.values()))
            for entries in self._entries.values()
            if entries
        ]
        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries

    async def list_record_ids(self) -> list[str]:
        """List every record id that has at least one entry."""
        return sorted(rid for rid, entries in self._entries.items() if entries)
