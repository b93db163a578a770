"""Version orchestrator.

Single write path for versions: allocates version numbers, writes the
store and then the index, and derives the latest flag on every read.
"""

import asyncio
import copy
import json
import random
from typing import Any

from orderledger.config.models.versioning import VersioningConfig
from orderledger.db.errors import ConflictError
from orderledger.observability.logging import get_logger
from orderledger.observability.metrics import (
    INDEX_WRITE_FAILURES,
    VERSION_CONFLICTS,
    VERSIONS_CREATED,
)
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.errors import (
    RecordNotFoundError,
    ValidationFailureError,
    VersionConflictError,
)
from orderledger.versioning.index import VersionIndex
from orderledger.versioning.models import (
    IndexEntry,
    RecordSummary,
    VersionedRecord,
    VersionHistory,
    VersionResponse,
    VersionSummary,
)
from orderledger.versioning.reconcile import IndexReconciler
from orderledger.versioning.record_ids import RecordIdPolicy
from orderledger.versioning.schema import FieldValidator, NoopFieldValidator, SchemaResolver
from orderledger.versioning.store import VersionStore

logger = get_logger(__name__)


class VersionOrchestrator:
    """Creates, promotes and reads record versions.

    Version numbers are allocated as highest + 1 read from the store.
    Two writers racing for the same number are separated by the store's
    uniqueness constraint: the loser gets a ConflictError, re-reads the
    highest version and retries after a jittered exponential backoff.

    The store is written before the index. An index write that fails
    after a successful append is logged and counted but does not fail
    the call; the IndexReconciler repairs the gap.
    """

    def __init__(
        self,
        store: VersionStore,
        index: VersionIndex,
        schema_resolver: SchemaResolver,
        *,
        validator: FieldValidator | None = None,
        record_ids: RecordIdPolicy | None = None,
        config: VersioningConfig | None = None,
        reconciler: IndexReconciler | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            store: Authoritative version store
            index: Payload-free version index
            schema_resolver: Source of the active schema id
            validator: Pre-commit validator for FINAL creates
            record_ids: Record id policy (built from config when omitted)
            config: Versioning settings
            reconciler: Index repair helper for lazy reconciliation
        """
        self._store = store
        self._index = index
        self._schema_resolver = schema_resolver
        self._config = config or VersioningConfig()
        self._validator = validator or NoopFieldValidator()
        self._record_ids = record_ids or RecordIdPolicy.from_config(self._config)
        self._reconciler = reconciler or IndexReconciler(store, index)

    async def create(
        self,
        record_id: str | None,
        payload: dict[str, Any],
        author: str,
        is_final: bool = False,
        change_note: str | None = None,
    ) -> VersionResponse:
        """Append a new version of a record.

        Args:
            record_id: Business key; may be missing or malformed for drafts
            payload: Business data, stored as given
            author: Who is writing the version
            is_final: Write a FINAL version instead of a DRAFT
            change_note: Optional free text

        Returns:
            The stored version, always the latest

        Raises:
            SchemaNotFoundError: If no schema is active
            ValidationFailureError: If the record id or payload is rejected,
                including payloads that are not plain JSON
            VersionConflictError: If conflict retries are exhausted
        """
        _require_json(payload)
        schema_id = await self._schema_resolver.get_active_schema_id()
        status = VersionStatus.FINAL if is_final else VersionStatus.DRAFT
        resolved_id = await self._record_ids.resolve(record_id, status, self._record_exists)

        if status == VersionStatus.FINAL:
            violations = await self._validator.validate(payload, schema_id)
            if violations:
                logger.info(
                    "final_version_rejected",
                    record_id=resolved_id,
                    violation_count=len(violations),
                )
                raise ValidationFailureError(
                    f"Validation failed for record {resolved_id}", violations
                )

        record = await self._append_next(
            resolved_id,
            operation="create",
            schema_version_id=schema_id,
            status=status,
            author=author,
            change_note=change_note,
            payload=copy.deepcopy(payload),
        )
        return VersionResponse.from_record(record, is_latest=True)

    async def get_latest(self, record_id: str) -> VersionResponse:
        """Get the version with the highest version number.

        Raises:
            RecordNotFoundError: If the record has no versions
        """
        record_id = self._record_ids.normalize(record_id)
        record = await self._store.get_highest_version(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return VersionResponse.from_record(record, is_latest=True)

    async def get_specific(self, record_id: str, version_number: int) -> VersionResponse:
        """Get one version, flagged latest when nothing higher is stored.

        Raises:
            RecordNotFoundError: If that version does not exist
        """
        record_id = self._record_ids.normalize(record_id)
        record = await self._store.get_by_key(record_id, version_number)
        if record is None:
            raise RecordNotFoundError(record_id, version_number)

        numbers = await self._store.list_version_numbers(record_id)
        is_latest = not numbers or numbers[-1] <= version_number
        return VersionResponse.from_record(record, is_latest=is_latest)

    async def get_history(self, record_id: str) -> VersionHistory:
        """List every version of a record, oldest first, without payloads.

        Entries come from the index. When they do not match the version
        numbers held by the store, the record is reconciled first; if the
        index still disagrees, the history is projected from the store.

        Raises:
            RecordNotFoundError: If the record has no versions
        """
        record_id = self._record_ids.normalize(record_id)
        numbers = await self._store.list_version_numbers(record_id)
        if not numbers:
            raise RecordNotFoundError(record_id)

        entries = await self._index.list_all(record_id)
        if [e.version_number for e in entries] != numbers:
            entries = await self._repaired_entries(record_id, numbers, entries)

        highest = max(e.version_number for e in entries)
        final_count = sum(1 for e in entries if e.status == VersionStatus.FINAL)
        return VersionHistory(
            record_id=record_id,
            total=len(entries),
            final_count=final_count,
            draft_count=len(entries) - final_count,
            versions=[
                VersionSummary.from_entry(e, is_latest=e.version_number == highest)
                for e in entries
            ],
        )

    async def promote(
        self,
        record_id: str,
        source_version_number: int,
        author: str,
        change_note: str | None = None,
    ) -> VersionResponse:
        """Create a FINAL version copying a DRAFT version.

        The source version is left exactly as it was.

        Raises:
            RecordNotFoundError: If the source version does not exist
            ValidationFailureError: If the source version is not a DRAFT
            VersionConflictError: If conflict retries are exhausted
        """
        record_id = self._record_ids.normalize(record_id)
        source = await self._store.get_by_key(record_id, source_version_number)
        if source is None:
            raise RecordNotFoundError(record_id, source_version_number)

        if source.status != VersionStatus.DRAFT:
            raise ValidationFailureError.for_field(
                "version_number",
                f"Version {source_version_number} is {source.status.value}; "
                "only DRAFT versions can be promoted",
            )

        record = await self._append_next(
            record_id,
            operation="promote",
            schema_version_id=source.schema_version_id,
            status=VersionStatus.FINAL,
            author=author,
            change_note=change_note or f"Promoted from draft version {source_version_number}",
            payload=source.payload,
        )
        logger.info(
            "version_promoted",
            record_id=record_id,
            source_version=source_version_number,
            version_number=record.version_number,
        )
        return VersionResponse.from_record(record, is_latest=True)

    async def get_final_versions(self, record_id: str) -> list[VersionResponse]:
        """List FINAL versions of a record, ascending.

        Raises:
            RecordNotFoundError: If the record has no versions
        """
        record_id = self._record_ids.normalize(record_id)
        highest = await self._store.get_highest_version(record_id)
        if highest is None:
            raise RecordNotFoundError(record_id)
        finals = await self._store.list_by_status(record_id, VersionStatus.FINAL)
        return [
            VersionResponse.from_record(
                r, is_latest=r.version_number == highest.version_number
            )
            for r in finals
        ]

    async def list_latest_records(self) -> list[RecordSummary]:
        """Summarize every record by its latest version, newest first."""
        return await self._index.list_latest_summaries()

    async def _repaired_entries(
        self,
        record_id: str,
        numbers: list[int],
        entries: list[IndexEntry],
    ) -> list[IndexEntry]:
        logger.warning(
            "version_index_out_of_sync",
            record_id=record_id,
            index_versions=len(entries),
            store_versions=len(numbers),
        )
        try:
            await self._reconciler.reconcile_record(record_id)
            entries = await self._index.list_all(record_id)
        except Exception as e:
            logger.error("lazy_reconcile_failed", record_id=record_id, error=str(e))
        else:
            if [entry.version_number for entry in entries] == numbers:
                return entries

        # Orphan FINAL entries stay in the index; the store still decides the history
        return [IndexEntry.from_record(r) for r in await self._store.list_all(record_id)]

    async def _record_exists(self, record_id: str) -> bool:
        return await self._store.get_highest_version(record_id) is not None

    async def _append_next(
        self,
        record_id: str,
        *,
        operation: str,
        **fields: Any,
    ) -> VersionedRecord:
        attempts = 0
        while True:
            highest = await self._store.get_highest_version(record_id)
            previous = highest.version_number if highest else None
            record = VersionedRecord(
                record_id=record_id,
                version_number=(previous or 0) + 1,
                previous_version_number=previous,
                **fields,
            )
            try:
                await self._store.append(record)
                break
            except ConflictError as e:
                attempts += 1
                if attempts > self._config.max_conflict_retries:
                    VERSION_CONFLICTS.labels(operation=operation, outcome="exhausted").inc()
                    logger.warning(
                        "version_conflict_exhausted",
                        record_id=record_id,
                        version_number=record.version_number,
                        attempts=attempts,
                    )
                    raise VersionConflictError(
                        record_id, record.version_number, attempts, cause=e
                    ) from e

                VERSION_CONFLICTS.labels(operation=operation, outcome="retried").inc()
                delay = self._backoff(attempts)
                logger.debug(
                    "version_conflict_retry",
                    record_id=record_id,
                    version_number=record.version_number,
                    attempt=attempts,
                    delay_seconds=round(delay, 4),
                )
                await asyncio.sleep(delay)

        VERSIONS_CREATED.labels(status=record.status.value, operation=operation).inc()
        logger.info(
            "version_created",
            record_id=record.record_id,
            version_number=record.version_number,
            status=record.status.value,
            operation=operation,
        )
        await self._write_index(record)
        return record

    async def _write_index(self, record: VersionedRecord) -> None:
        try:
            await self._index.add(IndexEntry.from_record(record))
        except Exception as e:
            INDEX_WRITE_FAILURES.inc()
            logger.error(
                "index_write_failed",
                record_id=record.record_id,
                version_number=record.version_number,
                error=str(e),
            )

    def _backoff(self, attempt: int) -> float:
        """Exponential backoff with equal jitter, capped."""
        ceiling = min(
            self._config.conflict_backoff_max_seconds,
            self._config.conflict_backoff_base_seconds * (2 ** (attempt - 1)),
        )
        return ceiling / 2 + random.uniform(0, ceiling / 2)


def _require_json(payload: dict[str, Any]) -> None:
    """Reject payloads every backend could not store as JSON."""
    try:
        json.dumps(payload, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationFailureError.for_field(
            "payload", f"Payload must be JSON-serializable: {e}"
        ) from e
