"""Draft purge engine.

Reclaims superseded drafts: for every record with DRAFT versions the
highest DRAFT is retained and all lower DRAFTs are deleted, from the
store first and then from the index. FINAL versions are never touched;
every delete carries a status=DRAFT filter.
"""

import time

from orderledger.observability.logging import get_logger
from orderledger.observability.metrics import (
    PURGE_DURATION,
    PURGE_RUNS,
    PURGE_VERSIONS_DELETED,
)
from orderledger.purge.errors import PurgeInProgressError, PurgeLockError
from orderledger.purge.lock import LocalPurgeLock, PurgeLock
from orderledger.purge.models import PurgeDetail, PurgeRun, PurgeTrigger, generate_purge_id
from orderledger.purge.store import PurgeAuditStore
from orderledger.versioning.enums import PurgeStatus, VersionStatus
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.models import DraftVersionsGroup, utc_now
from orderledger.versioning.reconcile import IndexReconciler
from orderledger.versioning.store import VersionStore

logger = get_logger(__name__)


class PurgeEngine:
    """Runs the draft purge and writes its audit record.

    Each executed run persists exactly one PurgeRun:
    - SUCCESS when every candidate record was processed
    - PARTIAL when at least one record failed (the rest still ran)
    - FAILED when the candidate query or the lock backend failed

    Each candidate record is reconciled before its drafts are read, so
    a draft the index missed cannot outlive a purge.
    """

    def __init__(
        self,
        store: VersionStore,
        index: VersionIndex,
        audit_store: PurgeAuditStore,
        *,
        lock: PurgeLock | None = None,
        lock_name: str = "draft-purge",
        reconciler: IndexReconciler | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            store: Version store to delete drafts from
            index: Version index providing candidates
            audit_store: Where run records go
            lock: Run lock (in-process lock when omitted)
            lock_name: Name of the run lock
            reconciler: Repairs each candidate record before its drafts are read
        """
        self._store = store
        self._index = index
        self._audit_store = audit_store
        self._lock = lock or LocalPurgeLock()
        self._lock_name = lock_name
        self._reconciler = reconciler or IndexReconciler(store, index)

    async def run(self, trigger: PurgeTrigger = "scheduled") -> PurgeRun:
        """Execute one purge run.

        An unreachable lock backend still produces a saved FAILED run.

        Raises:
            PurgeInProgressError: If another run holds the lock
            StoreError: If the audit record could not be saved
        """
        try:
            async with self._lock.acquire(self._lock_name) as acquired:
                if not acquired:
                    logger.warning("purge_skipped_lock_held", lock_name=self._lock_name)
                    raise PurgeInProgressError(self._lock_name)
                return await self._execute(trigger)
        except PurgeLockError as e:
            return await self._execute(trigger, failure=str(e))

    async def _execute(self, trigger: PurgeTrigger, failure: str | None = None) -> PurgeRun:
        start_time = utc_now()
        started = time.perf_counter()
        purge_id = generate_purge_id(start_time)
        logger.info("purge_started", purge_id=purge_id, trigger=trigger)

        status = PurgeStatus.SUCCESS
        error_message: str | None = None
        details: list[PurgeDetail] = []
        failed_record_ids: list[str] = []
        candidates: list[DraftVersionsGroup] = []

        if failure is not None:
            status = PurgeStatus.FAILED
            error_message = failure
        else:
            try:
                candidates = await self._index.find_records_with_drafts()
            except Exception as e:
                logger.error("purge_candidate_query_failed", purge_id=purge_id, error=str(e))
                status = PurgeStatus.FAILED
                error_message = str(e)
            else:
                logger.info("purge_candidates_found", purge_id=purge_id, count=len(candidates))

        for group in candidates:
            try:
                details.append(await self._purge_record(group))
            except Exception as e:
                logger.error(
                    "purge_record_failed",
                    purge_id=purge_id,
                    record_id=group.record_id,
                    error=str(e),
                )
                failed_record_ids.append(group.record_id)

        if failed_record_ids:
            status = PurgeStatus.PARTIAL
            error_message = (
                f"{len(failed_record_ids)} record(s) failed: {', '.join(failed_record_ids)}"
            )

        elapsed = time.perf_counter() - started
        run = PurgeRun(
            purge_id=purge_id,
            start_time=start_time,
            end_time=utc_now(),
            duration_ms=int(elapsed * 1000),
            status=status,
            trigger=trigger,
            records_processed=len(details),
            versions_deleted=sum(len(d.deleted_version_numbers) for d in details),
            versions_retained=sum(1 for d in details if d.retained_draft_version is not None),
            processed_record_ids=[d.record_id for d in details],
            details=details,
            error_message=error_message,
        )

        try:
            await self._audit_store.save_run(run)
        except Exception as e:
            logger.error("purge_audit_save_failed", purge_id=purge_id, error=str(e))
            raise

        PURGE_RUNS.labels(status=status.value, trigger=trigger).inc()
        PURGE_VERSIONS_DELETED.inc(run.versions_deleted)
        PURGE_DURATION.observe(elapsed)
        logger.info(
            "purge_completed",
            purge_id=purge_id,
            status=status.value,
            duration_ms=run.duration_ms,
            records_processed=run.records_processed,
            versions_deleted=run.versions_deleted,
            versions_retained=run.versions_retained,
        )
        return run

    async def _purge_record(self, group: DraftVersionsGroup) -> PurgeDetail:
        record_id = group.record_id
        await self._reconciler.reconcile_record(record_id)
        entries = await self._index.list_by_status(record_id, VersionStatus.DRAFT)
        drafts = sorted((e.version_number for e in entries), reverse=True)
        final_count = await self._index.count_by_status(record_id, VersionStatus.FINAL)
        if not drafts:
            return PurgeDetail(record_id=record_id, final_version_count=final_count)

        retained = drafts[0]
        to_delete = sorted(drafts[1:])

        if to_delete:
            deleted_from_store = await self._store.delete_versions(
                record_id, to_delete, VersionStatus.DRAFT
            )
            try:
                deleted_from_index = await self._index.delete_versions(
                    record_id, to_delete, VersionStatus.DRAFT
                )
            except Exception as e:
                # Store rows are gone; the leftover DRAFT entries are orphans the reconciler removes
                logger.error("purge_index_delete_failed", record_id=record_id, error=str(e))
                deleted_from_index = 0
            logger.debug(
                "purge_record_drafts_deleted",
                record_id=record_id,
                retained=retained,
                deleted=to_delete,
                store_deleted=deleted_from_store,
                index_deleted=deleted_from_index,
            )
            if deleted_from_store != len(to_delete) or deleted_from_index != len(to_delete):
                logger.warning(
                    "purge_delete_count_mismatch",
                    record_id=record_id,
                    expected=len(to_delete),
                    store_deleted=deleted_from_store,
                    index_deleted=deleted_from_index,
                )

        return PurgeDetail(
            record_id=record_id,
            deleted_version_numbers=to_delete,
            retained_draft_version=retained,
            final_version_count=final_count,
        )
