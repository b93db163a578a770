"""Store/Index reconciliation.

The version store and the version index are written one after the
other, not atomically. The store is authoritative: the reconciler
brings the index back in line with it.
"""

from pydantic import BaseModel, ConfigDict, Field

from orderledger.db.errors import ConflictError
from orderledger.observability.logging import get_logger
from orderledger.observability.metrics import INDEX_REPAIRS
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.models import IndexEntry
from orderledger.versioning.store import VersionStore

logger = get_logger(__name__)


class ReconcileResult(BaseModel):
    """Outcome of reconciling one record."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    added_versions: list[int] = Field(
        default_factory=list, description="Index entries created from store records"
    )
    removed_versions: list[int] = Field(
        default_factory=list, description="Orphan DRAFT entries removed from the index"
    )
    orphan_final_versions: list[int] = Field(
        default_factory=list, description="Orphan FINAL entries left in place"
    )

    @property
    def repaired(self) -> bool:
        return bool(self.added_versions or self.removed_versions)


class ReconcileReport(BaseModel):
    """Totals for a full reconciliation pass."""

    model_config = ConfigDict(frozen=True)

    records_checked: int = 0
    records_repaired: int = 0
    entries_added: int = 0
    entries_removed: int = 0
    orphan_final_entries: int = 0
    failed_record_ids: list[str] = Field(default_factory=list)


class IndexReconciler:
    """Repairs the version index from the version store.

    Missing entries are projected from store records. Orphan DRAFT
    entries are removed. Orphan FINAL entries are only reported, since
    a FINAL version must never disappear silently.
    """

    def __init__(self, store: VersionStore, index: VersionIndex) -> None:
        self._store = store
        self._index = index

    async def reconcile_record(self, record_id: str) -> ReconcileResult:
        """Bring the index entries of one record in line with the store."""
        records = {r.version_number: r for r in await self._store.list_all(record_id)}
        entries = {e.version_number: e for e in await self._index.list_all(record_id)}

        added: list[int] = []
        for number in sorted(records.keys() - entries.keys()):
            try:
                await self._index.add(IndexEntry.from_record(records[number]))
            except ConflictError:
                # A concurrent writer indexed it first
                logger.debug(
                    "index_entry_already_present",
                    record_id=record_id,
                    version_number=number,
                )
                continue
            added.append(number)

        orphans = sorted(entries.keys() - records.keys())
        orphan_drafts = [n for n in orphans if entries[n].status == VersionStatus.DRAFT]
        orphan_finals = [n for n in orphans if entries[n].status == VersionStatus.FINAL]

        if orphan_drafts:
            await self._index.delete_versions(record_id, orphan_drafts, VersionStatus.DRAFT)

        if added:
            INDEX_REPAIRS.labels(action="added").inc(len(added))
        if orphan_drafts:
            INDEX_REPAIRS.labels(action="removed").inc(len(orphan_drafts))
        if orphan_finals:
            logger.warning(
                "orphan_final_index_entries",
                record_id=record_id,
                version_numbers=orphan_finals,
            )

        result = ReconcileResult(
            record_id=record_id,
            added_versions=added,
            removed_versions=orphan_drafts,
            orphan_final_versions=orphan_finals,
        )
        if result.repaired:
            logger.info(
                "version_index_repaired",
                record_id=record_id,
                added=added,
                removed=orphan_drafts,
            )
        return result

    async def reconcile_all(self) -> ReconcileReport:
        """Reconcile every record known to either the store or the index.

        A failure on one record is logged and recorded in the report;
        the pass continues with the next record.
        """
        record_ids = sorted(
            set(await self._store.list_record_ids()) | set(await self._index.list_record_ids())
        )
        logger.info("reconcile_started", record_count=len(record_ids))

        repaired = added = removed = orphan_finals = 0
        failed: list[str] = []
        for record_id in record_ids:
            try:
                result = await self.reconcile_record(record_id)
            except Exception as e:
                logger.error("reconcile_record_failed", record_id=record_id, error=str(e))
                failed.append(record_id)
                continue
            if result.repaired:
                repaired += 1
            added += len(result.added_versions)
            removed += len(result.removed_versions)
            orphan_finals += len(result.orphan_final_versions)

        report = ReconcileReport(
            records_checked=len(record_ids),
            records_repaired=repaired,
            entries_added=added,
            entries_removed=removed,
            orphan_final_entries=orphan_finals,
            failed_record_ids=failed,
        )
        logger.info(
            "reconcile_completed",
            records_checked=report.records_checked,
            records_repaired=repaired,
            entries_added=added,
            entries_removed=removed,
            failed=len(failed),
        )
        return report
